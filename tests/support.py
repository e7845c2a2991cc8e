import unittest
from datetime import timedelta

from scanner_service.app import create_app
from scanner_service.extensions import db
from scanner_service.models import Order, Ticket, ScannerUser

from tests.fakes import BASE_TIME

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite://',
    'JWT_SECRET_KEY': 'test-secret-key-with-enough-length-for-hs256',
    'SCAN_LOG_ASYNC': False,
    'CREATE_TABLES': True,
    'LOG_LEVEL': 'WARNING',
}


class AppTestCase(unittest.TestCase):
    """Fresh app and in-memory SQLite database per test."""

    def setUp(self):
        self.app = create_app(TEST_CONFIG)
        self.client = self.app.test_client()
        self.ctx = self.app.app_context()
        self.ctx.push()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.ctx.pop()

    def add_order(self, order_id="O1", status="paid", count=3, ticket_status="valid"):
        order = Order(
            id=order_id,
            status=status,
            total_tickets=count,
            customer_first_name="Anna",
            customer_last_name="Petrova",
        )
        db.session.add(order)
        for i in range(1, count + 1):
            created = BASE_TIME + timedelta(minutes=i)
            db.session.add(Ticket(
                id=f"id-{order_id}-T{i}",
                order_id=order_id,
                ticket_number=f"{order_id}-T{i}",
                status=ticket_status,
                ticket_metadata={"holder_name": f"Guest {i}", "seat_row": "5", "seat_number": str(i)},
                created_at=created,
                updated_at=created,
            ))
        db.session.commit()
        return order

    def add_user(self, username="scanner1", password="secret-pass", role="scanner", is_active=True):
        user = ScannerUser(username=username, name=username.title(), role=role, is_active=is_active)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    def login(self, username="scanner1", password="secret-pass"):
        return self.client.post('/api/auth/login', json={'username': username, 'password': password})

    def ticket(self, ticket_number):
        db.session.expire_all()
        return Ticket.query.filter_by(ticket_number=ticket_number).first()
