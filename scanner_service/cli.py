import click
from sqlalchemy.exc import SQLAlchemyError

from scanner_service.extensions import db
from scanner_service.models.scanner_user import ScannerUser, ROLE_ADMIN, ROLE_SCANNER


def register_commands(app):

    @app.cli.command('create-operator')
    @click.argument('username')
    @click.argument('name')
    @click.option('--role', type=click.Choice([ROLE_SCANNER, ROLE_ADMIN]), default=ROLE_SCANNER, show_default=True)
    @click.password_option()
    def create_operator(username, name, role, password):
        """Seed a scanner operator account."""
        if ScannerUser.query.filter_by(username=username).first():
            raise click.ClickException(f"User {username} already exists")

        user = ScannerUser(username=username, name=name, role=role)
        user.set_password(password)
        try:
            db.session.add(user)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise click.ClickException(f"Database error: {e}")

        click.echo(f"Created {role} {username} ({user.id})")
