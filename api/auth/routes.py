"""
Authentication API routes for the CMS.

Login is rate limited; user management requires the ``users.manage``
permission.
"""

import logging

from flask import Blueprint, g, request

from extensions import limiter
from api.common import load_json, success
from core.exceptions import CmsError
from services.auth_service import AuthService
from services.authorization_service import (
    login_required, permission_required, permissions_for, role_summary
)
from .schemas import login_schema, user_create_schema, user_update_schema

logger = logging.getLogger(__name__)

# Create blueprint for authentication API routes
auth_api = Blueprint('auth', __name__, url_prefix='/auth')


@auth_api.route('/login', methods=['POST'])
@limiter.limit("10/minute")
def login():
    """
    Authenticate with email and password.

    Request Body:
        {"email": "string", "password": "string"}

    Returns:
        200 OK: ``access_token`` and the user
        400 BAD REQUEST: Missing credentials
        401 UNAUTHORIZED: Invalid credentials or disabled account
    """
    data = load_json(login_schema)
    ok, user, error_message = AuthService.authenticate_user(data['email'], data['password'],
                                                            request.remote_addr)
    if not ok:
        raise CmsError(error_message, status_code=401, code='invalid_credentials')
    return success(AuthService.token_response(user))


@auth_api.route('/me', methods=['GET'])
@login_required
def me():
    """Current user with the permissions of its role."""
    data = g.user.to_dict()
    data['permissions'] = sorted(permissions_for(g.user))
    return success(data)


@auth_api.route('/roles', methods=['GET'])
@login_required
def roles():
    return success(role_summary())


@auth_api.route('/users', methods=['GET'])
@permission_required('users.manage')
def list_users():
    return success([user.to_dict() for user in AuthService.list_users()])


@auth_api.route('/users', methods=['POST'])
@permission_required('users.manage')
def create_user():
    data = load_json(user_create_schema)
    user = AuthService.create_user(**data)
    return success(user.to_dict(), 201)


@auth_api.route('/users/<int:user_id>', methods=['PATCH'])
@permission_required('users.manage')
def update_user(user_id: int):
    data = load_json(user_update_schema, partial=True)
    user = AuthService.update_user(user_id, **data)
    return success(user.to_dict())
