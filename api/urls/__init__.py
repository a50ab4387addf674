"""
URL API module for the CMS.

Key endpoints:
- /api/urls/patterns: URL patterns per post type and locale
- /api/urls/redirects: Redirect rules
- /api/urls/match: Debug matching of a path against the patterns
"""

from .routes import urls_api

__all__ = ['urls_api']
