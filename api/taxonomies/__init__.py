"""
Taxonomy API module for the CMS.

Key endpoints:
- /api/taxonomies: Taxonomy CRUD
- /api/taxonomies/<id>/terms: Terms, flat or as a tree (``?tree=1``)
- /api/taxonomies/terms/<id>: Term updates and deletion
"""

from .routes import taxonomies_api

__all__ = ['taxonomies_api']
