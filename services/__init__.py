"""
Services Package for the CMS.

This package provides the service layer that encapsulates the business logic
of the CMS independently from presentation concerns. Services are reused by
the JSON API, the CLI commands and the background scheduler.

Modules:
    content_versioning: Read/write helpers for the publish, review and ai-review layers
    module_registry / post_types: Code-first module and post type definitions
    post_service / post_module_service: Posts and their module layouts
    review_service / revision_service: Draft promotion and revision history
    serializer_service: Canonical JSON export and import
    variation_service / translation_service: A/B groups and translation families
    taxonomy_service / custom_field_service / template_service / menu_service
    url_pattern_service / locale_service / public_service: URLs, locales and page resolution
    authorization_service: Roles, permissions and route decorators
    webhook_service / form_service: Outgoing webhooks and form submissions
    agents: AI agent registry and execution
    workflows: Code-defined webhook workflows run on CMS events

Service modules are imported directly (``from services.post_service import
PostService``) so that importing the package stays free of side effects.
"""

__version__ = '1.0.0'

__all__ = [
    'agents',
    'authorization_service',
    'content_versioning',
    'custom_field_service',
    'form_service',
    'locale_service',
    'menu_service',
    'module_registry',
    'post_module_service',
    'post_service',
    'post_types',
    'public_service',
    'review_service',
    'revision_service',
    'serializer_service',
    'taxonomy_service',
    'template_service',
    'translation_service',
    'url_pattern_service',
    'variation_service',
    'webhook_service',
    'workflows',
]
