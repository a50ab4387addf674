"""
Posts API module for the CMS.

Key endpoints:
- /api/posts: List and create posts
- /api/posts/<id>: Read (``?mode=``), save (``mode`` in the body) and trash a post
- /api/posts/<id>/approve, /reject: Review workflow
- /api/posts/bulk, /reorder: Bulk status changes and sibling ordering
- /api/posts/<id>/revisions: Revision history and revert
- /api/posts/<id>/export, /api/posts/import: Canonical JSON
- /api/posts/<id>/translations, /variations: Translation families and A/B tests
- /api/posts/<id>/modules: Module placements
"""

from .routes import posts_api
from . import family, modules  # noqa: F401

__all__ = ['posts_api']
