import unittest
from datetime import datetime, timezone
from unittest import mock

from sqlalchemy.exc import OperationalError

from scanner_service.extensions import db
from scanner_service.models.ticket import STATUS_USED, STATUS_VALID
from scanner_service.services.ticket_store import SqlTicketStore, StoreError

from tests.support import AppTestCase

NOW = datetime(2024, 6, 1, 18, 30, tzinfo=timezone.utc)


class TestSqlTicketStore(AppTestCase):

    def setUp(self):
        super().setUp()
        self.store = SqlTicketStore(db)
        self.add_order("O1", count=3)

    def test_lists_tickets_oldest_first(self):
        numbers = [t.ticket_number for t in self.store.list_order_tickets("O1")]
        self.assertEqual(numbers, ["O1-T1", "O1-T2", "O1-T3"])

    def test_lookups(self):
        self.assertEqual(self.store.get_order("O1").customer_name, "Anna Petrova")
        self.assertIsNone(self.store.get_order("missing"))
        self.assertEqual(self.store.get_ticket_by_number("O1-T2").id, "id-O1-T2")
        self.assertIsNone(self.store.get_ticket_by_number("missing"))

    def test_mark_used_is_conditional(self):
        first = self.store.mark_used("id-O1-T1", NOW)
        second = self.store.mark_used("id-O1-T1", NOW)

        self.assertEqual(first.status, STATUS_USED)
        self.assertIsNotNone(first.used_at)
        self.assertIsNone(second)

    def test_mark_all_used_skips_tickets_no_longer_valid(self):
        self.store.mark_used("id-O1-T2", NOW)

        updated = self.store.mark_all_used(["id-O1-T1", "id-O1-T2", "id-O1-T3"], NOW)

        self.assertEqual([t.ticket_number for t in updated], ["O1-T1", "O1-T3"])
        self.assertEqual({t.status for t in self.store.list_order_tickets("O1")}, {STATUS_USED})

    def test_mark_all_used_with_nothing_to_do(self):
        self.assertEqual(self.store.mark_all_used([], NOW), [])

    def test_write_failure_rolls_back_and_raises(self):
        failure = OperationalError("UPDATE tickets", {}, Exception("database is locked"))
        with mock.patch.object(db.session, "commit", side_effect=failure):
            with self.assertRaises(StoreError):
                self.store.mark_used("id-O1-T1", NOW)
            with self.assertRaises(StoreError):
                self.store.mark_all_used(["id-O1-T1", "id-O1-T2"], NOW)

        self.assertEqual(self.ticket("O1-T1").status, STATUS_VALID)
        self.assertEqual(self.ticket("O1-T2").status, STATUS_VALID)


if __name__ == '__main__':
    unittest.main()
