from flask import Blueprint, request, jsonify
from flask_jwt_extended import (
    create_access_token,
    get_jwt,
    get_jwt_identity,
    jwt_required,
    set_access_cookies,
    unset_jwt_cookies,
    verify_jwt_in_request,
)
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from scanner_service.app_logger import get_logger
from scanner_service.extensions import db, BLOCKLIST
from scanner_service.models.scanner_user import ScannerUser

logger = get_logger(__name__)

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Authenticate a scanner operator and start a session
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - username
            - password
          properties:
            username:
              type: string
            password:
              type: string
    responses:
      200:
        description: Login successful, scanner_token cookie set
      400:
        description: Missing username or password
      401:
        description: Invalid credentials or inactive account
    """
    data = request.get_json(silent=True) or {}
    if not data.get('username') or not data.get('password'):
        return jsonify({'success': False, 'message': 'Username and password are required'}), 400

    user = ScannerUser.query.filter_by(username=data['username'], is_active=True).first()

    if not user or not user.check_password(data['password']):
        logger.info("Failed login for %s", data['username'])
        return jsonify({'success': False, 'message': 'Invalid username or password'}), 401

    token = create_access_token(
        identity=str(user.id),
        additional_claims={'username': user.username, 'name': user.name, 'role': user.role},
    )

    response = jsonify({
        'success': True,
        'message': 'Login successful',
        'user': user.to_dict(),
        'token': token
    })
    set_access_cookies(response, token)
    logger.info("Scanner %s logged in", user.username)
    return response, 200


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """
    End the operator session (revokes the token if one is present)
    ---
    tags:
      - Auth
    responses:
      200:
        description: Logout successful
    """
    # Logging out with an expired or broken token still clears the cookie
    try:
        verify_jwt_in_request(optional=True)
        jwt_payload = get_jwt()
    except (JWTExtendedException, PyJWTError):
        jwt_payload = {}

    if jwt_payload:
        BLOCKLIST.add(jwt_payload['jti'])

    response = jsonify({'success': True, 'message': 'Logged out'})
    unset_jwt_cookies(response)
    return response, 200


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def me():
    """
    Current operator
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Operator profile
      401:
        description: Not authenticated
      404:
        description: Operator no longer exists or is inactive
    """
    user = db.session.get(ScannerUser, get_jwt_identity())
    if not user or not user.is_active:
        return jsonify({'success': False, 'message': 'User not found'}), 404

    return jsonify({'success': True, 'user': user.to_dict()}), 200
