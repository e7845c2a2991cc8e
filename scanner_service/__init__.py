"""
Ticket Scanner Service
QR ticket validation at venue entry, scan audit log and operator statistics.
"""

__version__ = "1.0.0"
