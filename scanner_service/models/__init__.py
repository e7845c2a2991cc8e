from scanner_service.models.order import Order
from scanner_service.models.ticket import Ticket
from scanner_service.models.scanner_user import ScannerUser
from scanner_service.models.scan_log import ScanLog

__all__ = ["Order", "Ticket", "ScannerUser", "ScanLog"]
