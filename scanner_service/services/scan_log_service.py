"""
Scan Audit Log — append-only record of validation attempts.
Writes are best-effort: a failed insert is logged and dropped, it never
changes or delays the validation response.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

from sqlalchemy.exc import SQLAlchemyError

from scanner_service.app_logger import get_logger
from scanner_service.models.scan_log import ScanLog

logger = get_logger(__name__)

RESULT_SUCCESS = "success"
RESULT_ERROR = "error"
RESULT_ALREADY_USED = "already_used"
RESULT_NOT_FOUND = "not_found"


class SqlScanLogWriter:
    """Inserts one scan_logs row in its own app context (and so its own session)."""

    def __init__(self, app, db):
        self.app = app
        self.db = db

    def __call__(self, scanner_id, ticket_number, result, device_info=None):
        with self.app.app_context():
            entry = ScanLog(
                scanner_user_id=scanner_id,
                ticket_number=ticket_number,
                scan_result=result,
                device_info=device_info,
            )
            try:
                self.db.session.add(entry)
                self.db.session.commit()
            except SQLAlchemyError:
                self.db.session.rollback()
                raise


class ScanAuditLog:
    def __init__(self, writer, executor=None, max_pending=1000):
        self._writer = writer
        self._executor = executor
        # Queued plus running writes; beyond this entries are dropped
        self._slots = threading.BoundedSemaphore(max_pending)

    @classmethod
    def for_app(cls, app, db):
        executor = None
        if app.config.get("SCAN_LOG_ASYNC", True):
            executor = ThreadPoolExecutor(
                max_workers=app.config.get("SCAN_LOG_WORKERS", 4),
                thread_name_prefix="scan-log",
            )
        return cls(
            SqlScanLogWriter(app, db),
            executor,
            max_pending=app.config.get("SCAN_LOG_MAX_PENDING", 1000),
        )

    def record(self, scanner_id, ticket_number, result, device_info=None):
        # Unattributed scans are not logged
        if not scanner_id:
            return

        if self._executor is None:
            self._write(scanner_id, ticket_number, result, device_info)
            return

        if not self._slots.acquire(blocking=False):
            logger.warning("Scan log queue full, dropped (%s, %s)", ticket_number, result)
            return

        try:
            future = self._executor.submit(self._write, scanner_id, ticket_number, result, device_info)
        except RuntimeError as e:
            # executor already shut down
            self._slots.release()
            logger.error("Scan log dropped (%s, %s): %s", ticket_number, result, e)
            return
        future.add_done_callback(self._report)

    def _write(self, scanner_id, ticket_number, result, device_info):
        try:
            self._writer(scanner_id, ticket_number, result, device_info)
        except Exception:
            logger.exception("Failed to log scan: scanner=%s ticket=%s result=%s",
                             scanner_id, ticket_number, result)

    def _report(self, future):
        self._slots.release()
        exc = future.exception()
        if exc is not None:
            logger.error("Scan log task crashed: %s", exc)

    def shutdown(self, wait=True):
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
