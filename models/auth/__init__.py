"""
models/auth/__init__.py

Database models related to authentication and authorization.

Modules:
- user: Defines the User model for account management, authentication and the
  single CMS role each user carries.
"""

from .user import User

__all__ = ['User']
