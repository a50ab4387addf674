"""
Content models package for the CMS.

This package contains models related to content management, including:
- Posts for pages, blog entries, documentation and profiles
- Module instances and their placement on posts
- Post revisions for version history
- Taxonomies and terms for classification
- Custom field values
- URL patterns and redirects for routing
- Templates for seeding new posts
- Menus for navigation structure
- Locales
"""

from .post import Post
from .module import ModuleInstance, PostModule
from .revision import PostRevision
from .taxonomy import Taxonomy, TaxonomyTerm, post_taxonomy_terms
from .custom_field import PostCustomFieldValue
from .url import UrlPattern, UrlRedirect
from .template import Template, TemplateModule
from .menu import Menu, MenuItem
from .locale import Locale

# Define exports explicitly to control the public API
__all__ = [
    # Core content models
    "Post",
    "ModuleInstance",
    "PostModule",
    "PostRevision",

    # Classification
    "Taxonomy",
    "TaxonomyTerm",
    "post_taxonomy_terms",
    "PostCustomFieldValue",

    # Routing and structure
    "UrlPattern",
    "UrlRedirect",
    "Template",
    "TemplateModule",
    "Menu",
    "MenuItem",
    "Locale",
]
