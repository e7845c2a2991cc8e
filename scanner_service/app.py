"""
Ticket Scanner Service — Flask application
Validates scanned tickets at venue entry and keeps the scan audit log.
"""

import atexit
import os
from datetime import datetime, timedelta, timezone

from dotenv import load_dotenv
from flask import Flask, jsonify
from flasgger import Swagger

from scanner_service.app_logger import setup_logging, get_logger
from scanner_service.cli import register_commands
from scanner_service.extensions import db, jwt, BLOCKLIST
from scanner_service.models import Order, Ticket, ScannerUser, ScanLog  # Register models
from scanner_service.services.scan_log_service import ScanAuditLog
from scanner_service.services.ticket_store import SqlTicketStore
from scanner_service.services.validation_service import ValidationEngine

load_dotenv()

logger = get_logger(__name__)


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _database_uri():
    if os.environ.get('DATABASE_URL'):
        return os.environ['DATABASE_URL']

    db_user = os.environ.get('DB_USER', 'scanner_svc_user')
    db_pass = os.environ.get('DB_PASS', 'password')
    db_host = os.environ.get('DB_HOST', 'tickets-db')
    db_name = os.environ.get('DB_NAME', 'tickets_db')
    return f"postgresql://{db_user}:{db_pass}@{db_host}/{db_name}"


def create_app(test_config=None):
    app = Flask(__name__)

    # Configuration
    app.config['SQLALCHEMY_DATABASE_URI'] = _database_uri()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['CREATE_TABLES'] = _env_flag('CREATE_TABLES', True)

    app.config['JWT_SECRET_KEY'] = os.environ.get('JWT_SECRET', 'dev-secret-change-me')
    app.config['JWT_TOKEN_LOCATION'] = ['cookies', 'headers']
    app.config['JWT_ACCESS_COOKIE_NAME'] = 'scanner_token'
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(hours=int(os.environ.get('SESSION_HOURS', 24)))
    app.config['JWT_COOKIE_SECURE'] = _env_flag('JWT_COOKIE_SECURE', False)
    app.config['JWT_COOKIE_SAMESITE'] = 'Lax'
    app.config['JWT_COOKIE_CSRF_PROTECT'] = _env_flag('JWT_COOKIE_CSRF_PROTECT', False)

    app.config['SCAN_LOG_ASYNC'] = _env_flag('SCAN_LOG_ASYNC', True)
    app.config['SCAN_LOG_WORKERS'] = int(os.environ.get('SCAN_LOG_WORKERS', 4))
    app.config['SCAN_LOG_MAX_PENDING'] = int(os.environ.get('SCAN_LOG_MAX_PENDING', 1000))
    app.config['SCANNER_DISPLAY_TZ'] = os.environ.get('SCANNER_DISPLAY_TZ', 'UTC')
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO')

    if test_config:
        app.config.update(test_config)

    setup_logging(app.config['LOG_LEVEL'])

    # Initialize Extensions
    db.init_app(app)
    jwt.init_app(app)

    @jwt.token_in_blocklist_loader
    def check_if_token_in_blocklist(jwt_header, jwt_payload):
        return jwt_payload['jti'] in BLOCKLIST

    Swagger(app, template={
        "info": {"title": "Ticket Scanner Service", "version": "1.0.0"},
        "securityDefinitions": {
            "Bearer": {"type": "apiKey", "name": "Authorization", "in": "header"}
        },
    })

    # Register Blueprints
    from scanner_service.routes.validation import validation_bp
    app.register_blueprint(validation_bp, url_prefix='/api')

    from scanner_service.routes.auth import auth_bp
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    from scanner_service.routes.admin import admin_bp
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    if app.config['CREATE_TABLES']:
        with app.app_context():
            db.create_all()

    # Validation engine and its collaborators
    audit_log = ScanAuditLog.for_app(app, db)
    atexit.register(audit_log.shutdown)
    app.extensions['scan_audit_log'] = audit_log
    app.extensions['ticket_validation'] = ValidationEngine(
        SqlTicketStore(db),
        audit_log,
        display_tz=app.config['SCANNER_DISPLAY_TZ'],
    )

    register_commands(app)

    # --- Health check ---------------------------------------------------
    @app.route('/health')
    def health():
        try:
            db.session.execute(db.text('SELECT 1'))
            return jsonify({
                "status": "healthy",
                "service": "scanner-service",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }), 200
        except Exception as e:
            logger.error("Health check failed: %s", e)
            return jsonify({"status": "unhealthy", "service": "scanner-service", "error": str(e)}), 503

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=5004, threaded=True)
