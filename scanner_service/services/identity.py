"""
Operator identity — who is holding the scanner.

The scanner_token cookie (or a Bearer header) carries a signed JWT issued at
login. Identity is used to attribute scan logs only; a missing or broken
token never blocks validation, it just turns logging off for that request.
"""

from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

from scanner_service.app_logger import get_logger

logger = get_logger(__name__)


def current_scanner_id():
    try:
        verify_jwt_in_request(optional=True)
        identity = get_jwt_identity()
    except (JWTExtendedException, PyJWTError) as e:
        logger.warning("Ignoring unusable scanner token: %s", e)
        return None
    return str(identity) if identity else None
