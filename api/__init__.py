"""
API package for the CMS.

This package provides the JSON API used by the admin interface and by public
site rendering. Authentication is handled via JWT tokens; every admin route
declares the permission it needs. Responses use ``{"status": "success",
"data": ...}`` and errors ``{"status": "error", "message": ..., "code": ...}``.

Key API areas:
- Auth: Login, current user and user management
- Posts: CRUD, mode-aware saves, review approval, bulk actions, revisions,
  import/export, A/B variations, translations and post modules
- Modules: Module and post type definitions, global modules
- Taxonomies, templates, menus, locales, URL patterns and redirects
- Webhooks, workflows, agents and forms
- Public: Page resolution and variation view tracking
"""

import time

from flask import Blueprint, Flask, current_app, g, request

# Create main API blueprint
api_bp = Blueprint('api', __name__, url_prefix='/api')


@api_bp.before_request
def before_request():
    """Execute before each API request to set up request context"""
    g.request_start_time = time.time()


@api_bp.after_request
def after_request(response):
    """Execute after each API request for logging and cache headers"""
    if hasattr(g, 'request_start_time'):
        duration = time.time() - g.request_start_time
        current_app.logger.debug("%s %s -> %s in %.3fs", request.method, request.path,
                                 response.status_code, duration)

    response.headers['X-Content-Type-Options'] = 'nosniff'
    if not request.path.startswith('/api/public'):
        response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, max-age=0'
    return response


# Import and register API modules
from api.auth import auth_api  # noqa: E402
from api.posts import posts_api  # noqa: E402
from api.modules import modules_api  # noqa: E402
from api.taxonomies import taxonomies_api  # noqa: E402
from api.templates import templates_api  # noqa: E402
from api.menus import menus_api  # noqa: E402
from api.locales import locales_api  # noqa: E402
from api.urls import urls_api  # noqa: E402
from api.webhooks import webhooks_api  # noqa: E402
from api.agents import agents_api  # noqa: E402
from api.workflows import workflows_api  # noqa: E402
from api.forms import forms_api  # noqa: E402
from api.public import public_api  # noqa: E402

api_bp.register_blueprint(auth_api)
api_bp.register_blueprint(posts_api)
api_bp.register_blueprint(modules_api)
api_bp.register_blueprint(taxonomies_api)
api_bp.register_blueprint(templates_api)
api_bp.register_blueprint(menus_api)
api_bp.register_blueprint(locales_api)
api_bp.register_blueprint(urls_api)
api_bp.register_blueprint(webhooks_api)
api_bp.register_blueprint(agents_api)
api_bp.register_blueprint(workflows_api)
api_bp.register_blueprint(forms_api)
api_bp.register_blueprint(public_api)


def register_api_routes(app: Flask) -> None:
    """
    Register the API blueprint on the Flask application.

    Args:
        app: The Flask application instance
    """
    app.register_blueprint(api_bp)
    app.logger.debug("API routes registered")


__all__ = ['api_bp', 'register_api_routes']
