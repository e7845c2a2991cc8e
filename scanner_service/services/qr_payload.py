"""
QR Payload Parser
Normalises scanned strings into a lookup key. Three formats are in circulation:
    - e-mail QR:     {"ticket_id": <order id>, "ticket_number": ..., ...}
    - database QR:   {"order_id": <order id>, "ticket_number": ..., ...}
    - legacy:        the bare ticket_number string
"""

import json
from dataclasses import dataclass
from typing import Optional, Union

ORDER_KEY_FIELDS = ("ticket_id", "order_id")
TICKET_NUMBER_FIELDS = ("ticket_number", "ticketNumber")

UNKNOWN_KEY = "unknown"


def _first_present(data: dict, fields) -> Optional[str]:
    for field in fields:
        value = data.get(field)
        if value is None or value == "" or value is False:
            continue
        return value if isinstance(value, str) else str(value)
    return None


@dataclass(frozen=True)
class StructuredPayload:
    order_key: Optional[str]
    ticket_number: Optional[str]

    @property
    def log_key(self) -> str:
        return self.ticket_number or self.order_key or UNKNOWN_KEY


@dataclass(frozen=True)
class LegacyPayload:
    raw: str

    @property
    def order_key(self) -> Optional[str]:
        return None

    @property
    def ticket_number(self) -> str:
        return self.raw

    @property
    def log_key(self) -> str:
        return self.raw or UNKNOWN_KEY


QRPayload = Union[StructuredPayload, LegacyPayload]


def parse_qr_payload(raw: str) -> QRPayload:
    raw = (raw or "").strip()
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError):
        # RecursionError: pathologically nested input such as "[[[[..."
        return LegacyPayload(raw)

    # Bare JSON scalars ("12345", "\"ABC\"") are ticket numbers, not payloads
    if not isinstance(data, dict):
        return LegacyPayload(raw)

    return StructuredPayload(
        order_key=_first_present(data, ORDER_KEY_FIELDS),
        ticket_number=_first_present(data, TICKET_NUMBER_FIELDS),
    )
