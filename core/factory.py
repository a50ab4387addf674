"""
CMS application factory.

This module provides the application factory function for creating Flask
application instances with the appropriate configuration, extensions, API
blueprints, error handlers and CLI commands.
"""

import platform
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, g, jsonify, request
from marshmallow import ValidationError as SchemaValidationError
from werkzeug.exceptions import HTTPException

from extensions import db, init_extensions, jwt
from core.exceptions import CmsError
from core.logging import setup_app_logging
from config import get_config


def create_app(config_name: Optional[str] = None) -> Flask:
    """
    Create and configure a Flask application instance.

    Args:
        config_name: Name of the configuration to use ('development',
            'production', 'testing'). Defaults to the ENVIRONMENT variable.

    Returns:
        Flask: Configured Flask application instance ready to serve requests
    """
    app = Flask(__name__, instance_relative_config=True)

    # Load configuration
    config_obj = get_config(config_name)
    config_obj.init_app(app)

    # Set up logging early to capture initialization issues
    setup_app_logging(app)

    startup_start_time = time.time()

    # Initialize extensions
    init_extensions(app)
    register_jwt_handlers(app)

    # Register API blueprints
    from api import register_api_routes
    register_api_routes(app)

    register_request_hooks(app)
    register_error_handlers(app)

    # Register CLI commands
    from cli import register_cli_commands
    register_cli_commands(app)

    # Make sure every model is known to SQLAlchemy before create_all/migrations
    import models  # noqa: F401

    startup_duration = time.time() - startup_start_time
    log_startup_info(app, startup_duration)
    app.config['APP_INITIALIZATION_TIME'] = datetime.now(timezone.utc).isoformat()

    return app


def register_request_hooks(app: Flask) -> None:
    """Attach a request id to every request and echo it in the response."""

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get('X-Request-ID') or uuid.uuid4().hex

    @app.after_request
    def add_request_id_header(response):
        response.headers['X-Request-ID'] = getattr(g, 'request_id', '')
        return response


def register_jwt_handlers(app: Flask) -> None:
    """
    Register JSON responses for JWT failures.

    Args:
        app: The Flask application instance
    """

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        app.logger.info("JWT token expired", extra={'user_id': jwt_payload.get('sub')})
        return jsonify({
            'status': 'error',
            'message': 'Token has expired',
            'code': 'token_expired'
        }), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        app.logger.warning("Invalid JWT token: %s", error)
        return jsonify({
            'status': 'error',
            'message': 'Invalid token',
            'code': 'invalid_token'
        }), 401

    @jwt.unauthorized_loader
    def unauthorized_callback(error):
        return jsonify({
            'status': 'error',
            'message': 'Missing authorization token',
            'code': 'missing_token'
        }), 401

    @jwt.user_lookup_error_loader
    def user_lookup_error_callback(jwt_header, jwt_payload):
        return jsonify({
            'status': 'error',
            'message': 'User not found or inactive',
            'code': 'invalid_user'
        }), 401


def register_error_handlers(app: Flask) -> None:
    """
    Register error handlers that turn exceptions into JSON error responses.

    Args:
        app: The Flask application instance
    """

    @app.errorhandler(CmsError)
    def handle_cms_error(e: CmsError):
        if e.status_code >= 500:
            app.logger.error("%s %s failed: %s", request.method, request.path, e.message)
        else:
            app.logger.info("%s %s rejected (%s): %s", request.method, request.path, e.status_code, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SchemaValidationError)
    def handle_schema_error(e: SchemaValidationError):
        return jsonify({
            'status': 'error',
            'message': 'Invalid request data',
            'code': 'validation_error',
            'meta': {'errors': e.messages}
        }), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        if e.code >= 500:
            app.logger.error("HTTP %s: %s", e.code, e.description)
        elif e.code >= 400:
            app.logger.warning("HTTP %s: %s", e.code, e.description)
        return jsonify({
            'status': 'error',
            'message': e.description,
            'code': str(e.code)
        }), e.code

    @app.errorhandler(Exception)
    def handle_exception(e: Exception):
        db.session.rollback()
        app.logger.exception("Unhandled exception occurred", extra={
            'error': str(e),
            'error_type': e.__class__.__name__,
        })
        return jsonify({
            'status': 'error',
            'message': 'An unexpected error occurred',
            'code': 'server_error',
            'request_id': getattr(g, 'request_id', None)
        }), 500


def log_startup_info(app: Flask, startup_duration: float = 0.0) -> None:
    """
    Log application startup information.

    Args:
        app: The Flask application instance
        startup_duration: Startup duration in seconds
    """
    python_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    app.logger.info(
        "Starting %s v%s", app.config.get('APP_NAME', 'CMS'), app.config.get('VERSION', '1.0.0'),
        extra={
            'environment': app.config.get('ENVIRONMENT'),
            'debug': app.config.get('DEBUG'),
            'python_version': python_version,
            'platform': platform.platform(),
            'default_locale': app.config.get('CMS_DEFAULT_LOCALE'),
            'supported_locales': app.config.get('CMS_SUPPORTED_LOCALES'),
            'webhooks_enabled': app.config.get('WEBHOOKS_ENABLED', True),
            'startup_time_seconds': round(startup_duration, 3)
        }
    )
