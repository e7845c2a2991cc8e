"""
In-memory stand-ins for the ticket store and the scan log writer.
"""

import threading
from datetime import datetime, timedelta, timezone

from scanner_service.models.order import Order
from scanner_service.models.ticket import Ticket, STATUS_VALID, STATUS_USED
from scanner_service.services.ticket_store import TicketStore, StoreError

BASE_TIME = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)

_TICKET_FIELDS = (
    "id", "order_id", "seat_id", "event_id", "ticket_number", "qr_code",
    "status", "used_at", "ticket_metadata", "created_at", "updated_at",
)


def make_order(order_id="O1", status="paid", total_tickets=0, first="Anna", last="Petrova"):
    return Order(
        id=order_id,
        status=status,
        total_tickets=total_tickets,
        customer_first_name=first,
        customer_last_name=last,
        created_at=BASE_TIME,
    )


def make_ticket(ticket_number, order_id="O1", status=STATUS_VALID, used_at=None, offset=0, metadata=None):
    created = BASE_TIME + timedelta(minutes=offset)
    return Ticket(
        id=f"id-{ticket_number}",
        order_id=order_id,
        ticket_number=ticket_number,
        status=status,
        used_at=used_at,
        ticket_metadata=metadata,
        created_at=created,
        updated_at=created,
    )


def _copy(ticket):
    return Ticket(**{field: getattr(ticket, field) for field in _TICKET_FIELDS})


class InMemoryTicketStore(TicketStore):
    """Thread-safe fake with the same conditional-write semantics as the SQL store."""

    def __init__(self, orders=(), tickets=()):
        self.orders = {o.id: o for o in orders}
        self.tickets = {t.id: t for t in tickets}
        self.fail_writes = False
        self.transitions = []
        self._lock = threading.Lock()

    def add_order(self, order, *tickets):
        self.orders[order.id] = order
        for ticket in tickets:
            self.tickets[ticket.id] = ticket

    def get_order(self, order_id):
        return self.orders.get(order_id)

    def list_order_tickets(self, order_id):
        with self._lock:
            found = [_copy(t) for t in self.tickets.values() if t.order_id == order_id]
        return sorted(found, key=lambda t: (t.created_at, t.id))

    def get_ticket_by_number(self, ticket_number):
        with self._lock:
            for ticket in self.tickets.values():
                if ticket.ticket_number == ticket_number:
                    return _copy(ticket)
        return None

    def status_of(self, ticket_number):
        return self.get_ticket_by_number(ticket_number).status

    def _transition(self, ticket, now):
        ticket.status = STATUS_USED
        ticket.used_at = now
        ticket.updated_at = now
        self.transitions.append(ticket.id)

    def mark_used(self, ticket_id, now):
        if self.fail_writes:
            raise StoreError("connection reset")
        with self._lock:
            ticket = self.tickets.get(ticket_id)
            if ticket is None or ticket.status != STATUS_VALID:
                return None
            self._transition(ticket, now)
            return _copy(ticket)

    def mark_all_used(self, ticket_ids, now):
        if self.fail_writes:
            raise StoreError("connection reset")
        with self._lock:
            updated = []
            for ticket_id in ticket_ids:
                ticket = self.tickets.get(ticket_id)
                if ticket is not None and ticket.status == STATUS_VALID:
                    self._transition(ticket, now)
                    updated.append(_copy(ticket))
            return updated


class RecordingWriter:
    """Scan log writer that keeps entries in a list."""

    def __init__(self, fail=False):
        self.entries = []
        self.fail = fail
        self._lock = threading.Lock()

    def __call__(self, scanner_id, ticket_number, result, device_info=None):
        if self.fail:
            raise RuntimeError("scan_logs unavailable")
        with self._lock:
            self.entries.append((scanner_id, ticket_number, result))

    def results(self):
        return [entry[2] for entry in self.entries]
