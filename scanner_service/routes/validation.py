from flask import Blueprint, current_app, jsonify, request

from scanner_service.app_logger import get_logger
from scanner_service.services.identity import current_scanner_id
from scanner_service.services.validation_service import internal_error

logger = get_logger(__name__)

validation_bp = Blueprint('validation', __name__)


def get_engine():
    return current_app.extensions['ticket_validation']


def _respond(result):
    return jsonify(result.to_dict()), result.http_status


@validation_bp.route('/validate-ticket', methods=['POST'])
def validate_ticket():
    """
    Validate a scanned QR code and redeem one ticket
    ---
    tags:
      - Validation
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - ticket_number
          properties:
            ticket_number:
              type: string
              description: >
                Raw scanned string. JSON with order_id/ticket_id redeems the next
                valid ticket of the order; a bare ticket number (deprecated) redeems
                that ticket.
    responses:
      200:
        description: Ticket activated
      400:
        description: Malformed code, unpaid order, already used or cancelled ticket
      404:
        description: Order or ticket not found
      500:
        description: Ticket could not be activated
    """
    scanner_id = current_scanner_id()

    try:
        data = request.get_json(silent=True) or {}
        raw = data.get('ticket_number') if isinstance(data, dict) else None
        result = get_engine().validate_scan(
            raw,
            scanner_id=scanner_id,
            device_info=request.headers.get('User-Agent'),
        )
    except Exception:
        logger.exception("Validation error")
        result = internal_error()

    return _respond(result)


@validation_bp.route('/validate-all-tickets', methods=['POST'])
def validate_all_tickets():
    """
    Redeem every remaining ticket of an order
    ---
    tags:
      - Validation
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - order_id
          properties:
            order_id:
              type: string
    responses:
      200:
        description: Tickets activated, validated_count holds how many
      400:
        description: Missing order id, unpaid order or nothing left to redeem
      404:
        description: Order or tickets not found
      500:
        description: Tickets could not be activated
    """
    scanner_id = current_scanner_id()

    try:
        data = request.get_json(silent=True) or {}
        order_id = data.get('order_id') if isinstance(data, dict) else None
        result = get_engine().validate_all_for_order(
            order_id,
            scanner_id=scanner_id,
            device_info=request.headers.get('User-Agent'),
        )
    except Exception:
        logger.exception("Validate all error")
        result = internal_error()

    return _respond(result)
