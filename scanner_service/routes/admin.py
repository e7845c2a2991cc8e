from functools import wraps

from flask import Blueprint, jsonify
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from sqlalchemy.exc import SQLAlchemyError

from scanner_service.app_logger import get_logger
from scanner_service.extensions import db
from scanner_service.models.scanner_user import ScannerUser, ROLE_ADMIN
from scanner_service.services.stats_service import get_scan_stats

logger = get_logger(__name__)

admin_bp = Blueprint('admin', __name__)


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        user = db.session.get(ScannerUser, get_jwt_identity())
        if not user or not user.is_active or user.role != ROLE_ADMIN:
            return jsonify({'success': False, 'message': 'Insufficient permissions'}), 403
        return fn(*args, **kwargs)
    return wrapper


@admin_bp.route('/stats', methods=['GET'])
@admin_required
def stats():
    """
    Aggregate scan statistics
    ---
    tags:
      - Admin
    security:
      - Bearer: []
    responses:
      200:
        description: totalStats, scannerStats and the 50 most recent scans
      401:
        description: Not authenticated
      403:
        description: Not an admin
      500:
        description: Statistics could not be loaded
    """
    try:
        data = get_scan_stats()
    except SQLAlchemyError:
        logger.exception("Stats error")
        return jsonify({'success': False, 'message': 'Failed to load scan statistics'}), 500

    return jsonify({'success': True, 'data': data}), 200
