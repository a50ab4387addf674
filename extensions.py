"""
Flask extensions initialization module for the CMS.

This module initializes the Flask extensions used throughout the application.
It keeps them as module-level variables to avoid circular imports and to give
one central point for extension instance management.

Extensions are created here but bound to an application in the application
factory. This separation allows for proper testing setup, flexible
configuration, and avoids circular imports.

Extensions included:
- Database ORM via SQLAlchemy
- Database migrations via Flask-Migrate
- Caching of registry listings and resolved public pages
- CORS for the JSON API
- Rate limiting for login and public form endpoints
- JWT authentication for the admin API
- Request metrics via Prometheus
"""

import logging

from flask import Flask
from flask_caching import Cache
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from prometheus_flask_exporter import PrometheusMetrics

# Initialize logger
logger = logging.getLogger(__name__)

# Database - Required for models
db = SQLAlchemy()
"""
SQLAlchemy ORM integration for Flask.

Examples:
    Define a model:
    ```
    class Locale(db.Model):
        code = db.Column(db.String(10), primary_key=True)
    ```

    Query the database:
    ```
    post = Post.query.filter_by(slug='hello', locale='en').first()
    ```
"""

migrate = Migrate()
"""
Database migration support via Alembic.

Examples:
    ```
    flask db migrate -m "Add posts table"
    flask db upgrade
    ```
"""

cache = Cache()
"""
Application cache.

Used for the module and post type registry listings and for public page
resolution. Backed by SimpleCache unless CACHE_TYPE says otherwise.
"""

cors = CORS()
"""
Cross-Origin Resource Sharing support for /api/* routes.
"""

# Rate limiting - Protection against abuse
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000 per day", "200 per hour"],
    strategy="fixed-window"
)
"""
Rate limiting for API endpoints.

Examples:
    ```
    @limiter.limit("10/minute")
    def login():
        ...
    ```
"""

jwt = JWTManager()
"""
JSON Web Token authentication for the admin API.
"""

metrics = PrometheusMetrics.for_app_factory()
"""
Prometheus request metrics exposed on /metrics.

Only bound when METRICS_ENABLED is set, since the default registry refuses
duplicate collectors across several application instances.
"""


def init_extensions(app: Flask) -> None:
    """
    Initialize all Flask extensions with the application.

    Args:
        app: Flask application instance
    """
    db.init_app(app)
    migrate.init_app(app, db)
    cache.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": app.config.get('CORS_ORIGINS', '*')}})
    limiter.init_app(app)
    jwt.init_app(app)

    if app.config.get('METRICS_ENABLED', False):
        metrics.init_app(app)
        metrics.info('cms_app_info', 'CMS application info', version=app.config.get('VERSION', '1.0.0'))

    logger.debug("Extensions initialized for %s", app.name)


__all__ = ['db', 'migrate', 'cache', 'cors', 'limiter', 'jwt', 'metrics', 'init_extensions']
