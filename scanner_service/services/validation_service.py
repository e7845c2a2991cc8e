"""
Validation Service — ticket redemption at venue entry.

Decides, for a scanned code, whether entry is allowed and moves the
matching ticket from valid to used. Outcomes are ValidationResult objects;
only unexpected failures raise, and the HTTP layer maps those to
internal_error.

Order-level QR codes redeem the oldest still-valid ticket of the order,
so a group can walk in one by one on the same code. Legacy QR codes carry
a single ticket_number and redeem exactly that ticket.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from scanner_service.app_logger import get_logger
from scanner_service.models.ticket import STATUS_VALID, STATUS_USED, STATUS_CANCELLED
from scanner_service.services.qr_payload import parse_qr_payload, UNKNOWN_KEY
from scanner_service.services.scan_log_service import (
    RESULT_SUCCESS,
    RESULT_ERROR,
    RESULT_ALREADY_USED,
    RESULT_NOT_FOUND,
)
from scanner_service.services.ticket_store import StoreError

logger = get_logger(__name__)

PAID = "paid"
USED_AT_FORMAT = "%d.%m.%Y, %H:%M:%S"


class ResultKind(str, Enum):
    SUCCESS = "success"
    MALFORMED_INPUT = "malformed_input"
    ORDER_NOT_FOUND = "order_not_found"
    PAYMENT_NOT_COMPLETED = "payment_not_completed"
    TICKETS_NOT_FOUND = "tickets_not_found"
    TICKET_NOT_FOUND = "ticket_not_found"
    ALREADY_USED = "already_used"
    CANCELLED = "cancelled"
    INVALID_STATUS = "invalid_status"
    PERSISTENCE_ERROR = "persistence_error"
    INTERNAL_ERROR = "internal_error"


HTTP_STATUS = {
    ResultKind.SUCCESS: 200,
    ResultKind.MALFORMED_INPUT: 400,
    ResultKind.PAYMENT_NOT_COMPLETED: 400,
    ResultKind.ALREADY_USED: 400,
    ResultKind.CANCELLED: 400,
    ResultKind.INVALID_STATUS: 400,
    ResultKind.ORDER_NOT_FOUND: 404,
    ResultKind.TICKETS_NOT_FOUND: 404,
    ResultKind.TICKET_NOT_FOUND: 404,
    ResultKind.PERSISTENCE_ERROR: 500,
    ResultKind.INTERNAL_ERROR: 500,
}

# What ends up in scan_logs.scan_result for each outcome
SCAN_RESULT = {
    ResultKind.SUCCESS: RESULT_SUCCESS,
    ResultKind.ALREADY_USED: RESULT_ALREADY_USED,
    ResultKind.ORDER_NOT_FOUND: RESULT_NOT_FOUND,
    ResultKind.TICKETS_NOT_FOUND: RESULT_NOT_FOUND,
    ResultKind.TICKET_NOT_FOUND: RESULT_NOT_FOUND,
}


@dataclass
class ValidationResult:
    kind: ResultKind
    message: str
    ticket: Optional[object] = None
    order_info: Optional[dict] = None
    validated_count: Optional[int] = None

    @property
    def success(self):
        return self.kind is ResultKind.SUCCESS

    @property
    def http_status(self):
        return HTTP_STATUS[self.kind]

    @property
    def scan_result(self):
        return SCAN_RESULT.get(self.kind, RESULT_ERROR)

    def to_dict(self):
        body = {"success": self.success, "message": self.message}
        if not self.success:
            body["error_code"] = self.kind.name
        if self.ticket is not None:
            body["ticket"] = self.ticket.to_dict()
        if self.order_info is not None:
            body["order_info"] = self.order_info
        if self.validated_count is not None:
            body["validated_count"] = self.validated_count
        return body


def internal_error():
    return ValidationResult(ResultKind.INTERNAL_ERROR, "Internal server error")


def _order_info(order, total, used, remaining):
    return {
        "total_tickets": total,
        "used_tickets": used,
        "remaining_tickets": remaining,
        "customer_name": order.customer_name,
    }


class ValidationEngine:
    def __init__(self, store, audit_log, clock=None, display_tz="UTC"):
        self.store = store
        self.audit_log = audit_log
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.display_tz = ZoneInfo(display_tz)

    # --- entry points -------------------------------------------------------

    def validate_scan(self, raw, scanner_id=None, device_info=None):
        """Validate whatever the scanner read: order QR, ticket QR or a bare ticket number."""
        if not raw or not str(raw).strip():
            return ValidationResult(ResultKind.MALFORMED_INPUT, "QR code is missing")

        payload = parse_qr_payload(str(raw))

        if payload.order_key:
            return self.validate_order_key(
                payload.order_key, scanner_id, log_key=payload.log_key, device_info=device_info
            )

        if payload.ticket_number:
            return self.validate_ticket_number(payload.ticket_number, scanner_id, device_info=device_info)

        result = ValidationResult(ResultKind.MALFORMED_INPUT, "Unrecognised QR code format")
        self._log(scanner_id, UNKNOWN_KEY, result.scan_result, device_info)
        return result

    def validate_order_key(self, order_id, scanner_id=None, log_key=None, device_info=None):
        """Redeem the oldest still-valid ticket of a paid order."""
        log_key = log_key or order_id

        def reject(result):
            self._log(scanner_id, log_key, result.scan_result, device_info)
            return result

        order = self.store.get_order(order_id)
        if order is None:
            return reject(ValidationResult(ResultKind.ORDER_NOT_FOUND, "Order not found"))

        if order.status != PAID:
            return reject(ValidationResult(
                ResultKind.PAYMENT_NOT_COMPLETED,
                f"Order is not paid (status: {order.status})"
            ))

        # A lost race on the conditional write means another scanner took the
        # ticket first; re-read and try the next one until none are left.
        while True:
            tickets = self.store.list_order_tickets(order_id)
            if not tickets:
                return reject(ValidationResult(
                    ResultKind.TICKETS_NOT_FOUND, "No tickets found for this order"
                ))

            valid = [t for t in tickets if t.status == STATUS_VALID]
            used = [t for t in tickets if t.status == STATUS_USED]
            total = len(valid) + len(used)

            if not valid:
                last_used = used[-1] if used else None
                last_used_at = self.format_timestamp(last_used.used_at if last_used else None)
                return reject(ValidationResult(
                    ResultKind.ALREADY_USED,
                    f"All tickets already used ({len(used)}/{total}). Last used: {last_used_at}",
                    ticket=last_used,
                    order_info=_order_info(order, total, len(used), 0),
                ))

            candidate = valid[0]
            try:
                updated = self.store.mark_used(candidate.id, self.clock())
            except StoreError:
                return reject(ValidationResult(ResultKind.PERSISTENCE_ERROR, "Failed to activate ticket"))

            if updated is None:
                logger.info("Ticket %s taken by a concurrent scan, retrying order %s",
                            candidate.ticket_number, order_id)
                continue

            used_count = len(used) + 1
            remaining = len(valid) - 1
            if remaining > 0:
                message = f"Ticket activated! Used: {used_count}/{total}"
            else:
                message = f"Ticket activated! All tickets used ({used_count}/{total})"

            self._log(scanner_id, updated.ticket_number or log_key, RESULT_SUCCESS, device_info)
            return ValidationResult(
                ResultKind.SUCCESS,
                message,
                ticket=updated,
                order_info=_order_info(order, total, used_count, remaining),
            )

    def validate_ticket_number(self, ticket_number, scanner_id=None, device_info=None):
        """Redeem a single ticket by number. Kept for pre-order QR codes still in circulation."""
        logger.info("Legacy ticket_number scan: %s", ticket_number)

        def reject(result):
            self._log(scanner_id, ticket_number, result.scan_result, device_info)
            return result

        ticket = self.store.get_ticket_by_number(ticket_number)
        if ticket is None:
            return reject(ValidationResult(ResultKind.TICKET_NOT_FOUND, "Ticket not found"))

        if ticket.status != STATUS_VALID:
            return reject(self._status_rejection(ticket))

        try:
            updated = self.store.mark_used(ticket.id, self.clock())
        except StoreError:
            return reject(ValidationResult(ResultKind.PERSISTENCE_ERROR, "Failed to update ticket"))

        if updated is None:
            # Redeemed by someone else between our read and write
            current = self.store.get_ticket_by_number(ticket_number) or ticket
            return reject(self._status_rejection(current))

        self._log(scanner_id, ticket_number, RESULT_SUCCESS, device_info)
        return ValidationResult(ResultKind.SUCCESS, "Ticket successfully activated", ticket=updated)

    def validate_all_for_order(self, order_id, scanner_id=None, device_info=None):
        """Redeem every remaining valid ticket of a paid order at once."""
        if not order_id:
            return ValidationResult(ResultKind.MALFORMED_INPUT, "Order ID is missing")
        order_id = str(order_id)

        order = self.store.get_order(order_id)
        if order is None:
            return ValidationResult(ResultKind.ORDER_NOT_FOUND, "Order not found")

        if order.status != PAID:
            return ValidationResult(
                ResultKind.PAYMENT_NOT_COMPLETED,
                f"Order is not paid (status: {order.status})"
            )

        tickets = self.store.list_order_tickets(order_id)
        if not tickets:
            return ValidationResult(ResultKind.TICKETS_NOT_FOUND, "No tickets found")

        valid = [t for t in tickets if t.status == STATUS_VALID]
        total = len([t for t in tickets if t.status in (STATUS_VALID, STATUS_USED)])
        all_used = _order_info(order, total, total, 0)

        if not valid:
            return ValidationResult(ResultKind.ALREADY_USED, "All tickets already used", order_info=all_used)

        try:
            updated = self.store.mark_all_used([t.id for t in valid], self.clock())
        except StoreError:
            return ValidationResult(ResultKind.PERSISTENCE_ERROR, "Failed to activate tickets")

        if not updated:
            return ValidationResult(ResultKind.ALREADY_USED, "All tickets already used", order_info=all_used)

        for ticket in updated:
            self._log(scanner_id, ticket.ticket_number or order_id, RESULT_SUCCESS, device_info)

        count = len(updated)
        return ValidationResult(
            ResultKind.SUCCESS,
            f"Activated {count} tickets! All tickets used ({total}/{total})",
            order_info=all_used,
            validated_count=count,
        )

    # --- helpers ------------------------------------------------------------

    def _status_rejection(self, ticket):
        if ticket.status == STATUS_USED:
            return ValidationResult(
                ResultKind.ALREADY_USED,
                f"Ticket already used {self.format_timestamp(ticket.used_at)}",
                ticket=ticket,
            )
        if ticket.status == STATUS_CANCELLED:
            return ValidationResult(ResultKind.CANCELLED, "Ticket has been cancelled", ticket=ticket)
        return ValidationResult(
            ResultKind.INVALID_STATUS,
            f"Invalid ticket status: {ticket.status}",
            ticket=ticket,
        )

    def format_timestamp(self, value):
        if value is None:
            return "unknown"
        if isinstance(value, str):
            try:
                value = datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                return value
        # SQLite hands back naive datetimes; they were written as UTC
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(self.display_tz).strftime(USED_AT_FORMAT)

    def _log(self, scanner_id, ticket_number, scan_result, device_info=None):
        if self.audit_log is None:
            return
        self.audit_log.record(scanner_id, ticket_number, scan_result, device_info)
