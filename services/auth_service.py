"""
Authentication service for the CMS.

This module provides credential checks, JWT issuing and user management for
the admin API and the CLI.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from flask_jwt_extended import create_access_token
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.auth.user import User
from core.exceptions import CmsError, ConflictError
from core.utils.string import is_valid_email

logger = logging.getLogger(__name__)


class AuthService:
    """
    Service class to handle authentication-related operations.

    This class centralizes authentication logic used by the API routes and
    CLI commands.
    """

    @staticmethod
    def authenticate_user(email: str, password: str,
                          ip_address: Optional[str] = None) -> Tuple[bool, Optional[User], str]:
        """
        Authenticate a user with email and password.

        Args:
            email: Account email
            password: The password to verify
            ip_address: The IP address of the client (optional)

        Returns:
            Tuple containing:
            - Boolean indicating if authentication succeeded
            - User object if authentication succeeded, None otherwise
            - Error message if authentication failed, empty string otherwise
        """
        email = (email or '').strip().lower()
        user = User.query.filter_by(email=email).first()

        if user is None or not user.check_password(password or ''):
            logger.warning("Failed login for %s from %s", email, ip_address or 'unknown')
            return False, None, "Invalid email or password"

        if not user.is_active:
            logger.warning("Login attempt for disabled account %s", email)
            return False, None, "Account is disabled"

        user.update_last_login()
        logger.info("User %s logged in", user.id)
        return True, user, ""

    @staticmethod
    def generate_api_token(user: User) -> str:
        """
        Generate a JWT for API authentication.

        The identity is the user id as a string; role and email travel as
        additional claims.
        """
        return create_access_token(identity=str(user.id),
                                   additional_claims={'role': user.role, 'email': user.email})

    @staticmethod
    def list_users() -> List[User]:
        return User.query.order_by(User.email.asc()).all()

    @staticmethod
    def create_user(email: str, password: str, role: str = User.ROLE_EDITOR,
                    full_name: Optional[str] = None, is_active: bool = True) -> User:
        """
        Create a user account.

        Raises:
            CmsError: 400 for invalid emails, roles or short passwords
            ConflictError: If the email is taken
        """
        email = (email or '').strip().lower()
        if not is_valid_email(email):
            raise CmsError("Invalid email address", status_code=400, meta={'email': email})
        if User.query.filter_by(email=email).first() is not None:
            raise ConflictError("A user with this email already exists", meta={'email': email})
        try:
            user = User(email=email, password=password, role=role, full_name=full_name, is_active=is_active)
        except ValueError as e:
            raise CmsError(str(e), status_code=400)
        try:
            db.session.add(user)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to create user %s: %s", email, e)
            raise
        logger.info("Created %s user %s", role, email)
        return user

    @staticmethod
    def update_user(user_id: int, **changes: Any) -> User:
        """
        Update role, name, active flag or password of a user.

        Raises:
            CmsError: 400 for invalid roles or passwords
        """
        user = User.get_or_404(user_id, "User not found")
        try:
            if changes.get('password'):
                user.set_password(changes['password'])
            if changes.get('role') is not None:
                if changes['role'] not in User.VALID_ROLES:
                    raise ValueError(f"Invalid role: {changes['role']}")
                user.role = changes['role']
            if changes.get('full_name') is not None:
                user.full_name = changes['full_name']
            if changes.get('is_active') is not None:
                user.is_active = bool(changes['is_active'])
        except ValueError as e:
            db.session.rollback()
            raise CmsError(str(e), status_code=400)
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to update user %s: %s", user_id, e)
            raise
        return user

    @staticmethod
    def token_response(user: User) -> Dict[str, Any]:
        return {'access_token': AuthService.generate_api_token(user), 'token_type': 'Bearer',
                'user': user.to_dict()}
