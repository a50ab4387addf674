"""
Module definitions API for the CMS.

Key endpoints:
- /api/modules/types: Registered module types and their field schemas
- /api/modules/post-types: Registered post types
- /api/modules/globals: Shared (global) module instances
"""

from .routes import modules_api

__all__ = ['modules_api']
