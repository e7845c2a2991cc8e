"""
Ticket Store — transactional access to orders and tickets.
The validation engine receives a store instance instead of touching the
session directly, so tests can swap in an in-memory implementation.
"""

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from scanner_service.app_logger import get_logger
from scanner_service.models.order import Order
from scanner_service.models.ticket import Ticket, STATUS_VALID, STATUS_USED

logger = get_logger(__name__)


class StoreError(Exception):
    """A write against the ticket store failed and was rolled back."""


class TicketStore:
    """Operations the validation engine needs from the order/ticket tables."""

    def get_order(self, order_id):
        raise NotImplementedError

    def list_order_tickets(self, order_id):
        """All tickets of an order, oldest created_at first."""
        raise NotImplementedError

    def get_ticket_by_number(self, ticket_number):
        raise NotImplementedError

    def mark_used(self, ticket_id, now):
        """
        Conditionally move one ticket from valid to used.
        Returns the updated ticket, or None when the ticket was no longer valid.
        Raises StoreError on write failure.
        """
        raise NotImplementedError

    def mark_all_used(self, ticket_ids, now):
        """
        Move every still-valid ticket in ticket_ids to used in one transaction.
        Returns the tickets actually transitioned. Raises StoreError on failure,
        in which case nothing was written.
        """
        raise NotImplementedError


class SqlTicketStore(TicketStore):
    def __init__(self, db):
        self.db = db

    def get_order(self, order_id):
        return self.db.session.get(Order, order_id)

    def list_order_tickets(self, order_id):
        return (
            Ticket.query.filter_by(order_id=order_id)
            .order_by(Ticket.created_at.asc(), Ticket.id.asc())
            .all()
        )

    def get_ticket_by_number(self, ticket_number):
        return Ticket.query.filter_by(ticket_number=ticket_number).first()

    def mark_used(self, ticket_id, now):
        # Single conditional UPDATE: two scanners racing on the same row
        # cannot both see rowcount == 1.
        stmt = (
            update(Ticket)
            .where(Ticket.id == ticket_id, Ticket.status == STATUS_VALID)
            .values(status=STATUS_USED, used_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.session.execute(stmt)
            self.db.session.commit()
            if result.rowcount != 1:
                return None
            # commit expired the identity map, so this reads the new row
            return self.db.session.get(Ticket, ticket_id)
        except SQLAlchemyError as e:
            self.db.session.rollback()
            logger.error("Failed to mark ticket %s as used: %s", ticket_id, e)
            raise StoreError(str(e)) from e

    def mark_all_used(self, ticket_ids, now):
        if not ticket_ids:
            return []
        try:
            # SELECT FOR UPDATE to lock the rows; rows that stopped being
            # valid while we waited drop out of the result
            locked = (
                Ticket.query
                .filter(Ticket.id.in_(ticket_ids), Ticket.status == STATUS_VALID)
                .order_by(Ticket.created_at.asc(), Ticket.id.asc())
                .with_for_update()
                .all()
            )
            locked_ids = [t.id for t in locked]
            if locked_ids:
                self.db.session.execute(
                    update(Ticket)
                    .where(Ticket.id.in_(locked_ids), Ticket.status == STATUS_VALID)
                    .values(status=STATUS_USED, used_at=now, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
            self.db.session.commit()
            for ticket in locked:
                self.db.session.refresh(ticket)
            return locked
        except SQLAlchemyError as e:
            self.db.session.rollback()
            logger.error("Failed to mark %d tickets as used: %s", len(ticket_ids), e)
            raise StoreError(str(e)) from e
