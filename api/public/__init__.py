"""
Public API module for the CMS.

Unauthenticated, read-only access used by the site renderer: path
resolution (redirects, URL patterns and A/B variation choice) and view
tracking for A/B tests.
"""

from .routes import public_api

__all__ = ['public_api']
