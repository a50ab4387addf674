"""
Template API module for the CMS.

Templates are named module layouts per post type used to seed new posts.
"""

from .routes import templates_api

__all__ = ['templates_api']
