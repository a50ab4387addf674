"""
Authentication API module for the CMS.

Key endpoints:
- /api/auth/login: Authenticate with email and password and obtain a JWT
- /api/auth/me: Current user with role and permissions
- /api/auth/users: User management (``users.manage``)
- /api/auth/roles: Role definitions with their permissions
"""

from .routes import auth_api

__all__ = ['auth_api']
