"""
Ticket Model — issued by the checkout system.
Status: valid | used | cancelled
Only status, used_at and updated_at are written by this service.
"""

import json
import uuid
from datetime import datetime, timezone
from scanner_service.extensions import db

STATUS_VALID = "valid"
STATUS_USED = "used"
STATUS_CANCELLED = "cancelled"


def _isoformat(value):
    return value.isoformat() if value else None


def decode_metadata(value):
    """Legacy writers stored metadata as a JSON string; undecodable values become None."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return None
    return value


class Ticket(db.Model):
    __tablename__ = "tickets"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False, index=True)
    seat_id = db.Column(db.String(36), nullable=True)
    event_id = db.Column(db.String(36), nullable=True)
    ticket_number = db.Column(db.String(64), unique=True, nullable=False, index=True)
    qr_code = db.Column(db.JSON, nullable=True)
    status = db.Column(db.String(20), nullable=False, default=STATUS_VALID)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    # "metadata" is reserved on declarative models
    ticket_metadata = db.Column("metadata", db.JSON, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    def to_dict(self):
        return {
            "id":            self.id,
            "order_id":      self.order_id,
            "seat_id":       self.seat_id,
            "event_id":      self.event_id,
            "ticket_number": self.ticket_number,
            "qr_code":       self.qr_code,
            "status":        self.status,
            "used_at":       _isoformat(self.used_at),
            "metadata":      decode_metadata(self.ticket_metadata),
            "created_at":    _isoformat(self.created_at),
            "updated_at":    _isoformat(self.updated_at),
        }
