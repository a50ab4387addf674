"""
Menu API module for the CMS.

Key endpoints:
- /api/menus: Menu CRUD
- /api/menus/<id>/items: Add items; /api/menus/items/<id> to edit or remove
- /api/menus/<id>/tree: Nested items with resolved URLs
- /api/menus/<id>/reorder: Item ordering and nesting
"""

from .routes import menus_api

__all__ = ['menus_api']
