"""
Authentication Helpers
======================
bcrypt password hashing and JWT bearer tokens (flask-jwt-extended).
Tokens carry the account id as identity and the role as an extra claim.
"""
import logging
from functools import wraps

import bcrypt
from flask import current_app, jsonify
from flask_jwt_extended import (
    JWTManager, create_access_token, get_jwt, get_jwt_identity, verify_jwt_in_request
)

logger = logging.getLogger(__name__)

jwt = JWTManager()


def init_jwt(app):
    """Attach the JWT manager to the app with JSON error responses."""
    jwt.init_app(app)


@jwt.unauthorized_loader
def _jwt_unauthorized(err):
    return jsonify({'message': "Accès refusé, token manquant."}), 401


@jwt.invalid_token_loader
def _jwt_invalid(err):
    logger.info("Rejected token: %s", err)
    return jsonify({'message': "Token invalide."}), 401


@jwt.expired_token_loader
def _jwt_expired(jwt_header, jwt_payload):
    return jsonify({'message': "Token invalide."}), 401


def hash_password(password):
    rounds = current_app.config.get('BCRYPT_ROUNDS', 10)
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds)).decode('utf-8')


def check_password(password, password_hash):
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def issue_token(account):
    """Create an access token for a validated account."""
    return create_access_token(identity=str(account.id), additional_claims={'role': account.role})


def current_account_id():
    return int(get_jwt_identity())


def current_role():
    return get_jwt().get('role')


def role_required(*roles):
    """
    Require a valid bearer token, and one of `roles` when given.

    Usage:
        @api_bp.route('/medicaments', methods=['POST'])
        @role_required('pharmacien')
        def create_medication(): ...
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if roles and current_role() not in roles:
                return jsonify({'message': "Accès refusé."}), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator
