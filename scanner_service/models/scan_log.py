"""
Scan Log Model — append-only audit trail of validation attempts.
Result: success | error | already_used | not_found
"""

import uuid
from datetime import datetime, timezone
from scanner_service.extensions import db

SCAN_RESULTS = ("success", "error", "already_used", "not_found")


class ScanLog(db.Model):
    __tablename__ = "scan_logs"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    scanner_user_id = db.Column(
        db.String(36),
        db.ForeignKey("scanner_users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    ticket_number = db.Column(db.String(255), nullable=False)
    scan_result = db.Column(db.Enum(*SCAN_RESULTS, name="scan_result"), nullable=False)
    device_info = db.Column(db.Text, nullable=True)
    scanned_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True
    )

    scanner = db.relationship("ScannerUser", backref=db.backref("scan_logs", lazy=True))

    def to_dict(self):
        return {
            "id":              self.id,
            "scanner_user_id": self.scanner_user_id,
            "ticket_number":   self.ticket_number,
            "scan_result":     self.scan_result,
            "device_info":     self.device_info,
            "scanned_at":      self.scanned_at.isoformat() if self.scanned_at else None,
        }
