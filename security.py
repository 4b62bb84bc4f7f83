"""
Identity provider glue for Flask-JWT-Extended.

Access tokens carry the user id as identity plus a ``role`` claim. On every
protected request the user row is loaded so services receive a real
principal (``current_user``) rather than trusting the claim.
"""
from flask import jsonify
from flask_jwt_extended import create_access_token
from extensions import db, jwt
from models import User, Role
from errors import Unauthenticated, Forbidden


def issue_token(user):
    return create_access_token(identity=str(user.id), additional_claims={"role": user.role.value})


@jwt.user_lookup_loader
def load_principal(_jwt_header, jwt_data):
    try:
        user_id = int(jwt_data["sub"])
    except (TypeError, ValueError):
        return None
    return db.session.get(User, user_id)


@jwt.user_lookup_error_loader
def principal_not_found(_jwt_header, _jwt_data):
    return jsonify({'error': 'Unauthorized'}), 401


@jwt.unauthorized_loader
def missing_token(reason):
    return jsonify({'error': 'Unauthorized'}), 401


@jwt.invalid_token_loader
def invalid_token(reason):
    return jsonify({'error': 'Unauthorized'}), 401


@jwt.expired_token_loader
def expired_token(_jwt_header, _jwt_data):
    return jsonify({'error': 'Session expired. Please log in again.'}), 401


# ==========================================
#  ROLE CHECKS
# ==========================================
def is_admin(principal):
    """Exhaustive over Role; anything else is rejected."""
    if principal.role is Role.ADMIN:
        return True
    if principal.role is Role.USER:
        return False
    raise ValueError(f"Unknown role: {principal.role!r}")


def require_role(principal, role, message=None):
    if principal is None:
        raise Unauthenticated()
    wants_admin = role is Role.ADMIN
    if is_admin(principal) != wants_admin:
        raise Forbidden(message)
    return principal
