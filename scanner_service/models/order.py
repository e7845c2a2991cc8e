"""
Order Model — owned by the checkout system, read-only here.
Status: pending | paid | cancelled | refunded
"""

import uuid
from datetime import datetime, timezone
from scanner_service.extensions import db


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    status = db.Column(db.String(20), nullable=False, default="pending")
    total_tickets = db.Column(db.Integer, nullable=False, default=0)
    customer_first_name = db.Column(db.String(255), nullable=False, default="")
    customer_last_name = db.Column(db.String(255), nullable=False, default="")
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    @property
    def customer_name(self):
        return f"{self.customer_first_name} {self.customer_last_name}".strip()
