"""
Testing environment configuration for the CMS.

This module defines configuration settings for the testing environment,
optimized for automated testing with deterministic behavior and isolated
test data.
"""

import os

from .base import Config


class TestingConfig(Config):
    """
    Configuration for testing environment.

    Uses an in-memory database, synchronous webhook delivery, and disables
    features that would interfere with tests.
    """

    ENVIRONMENT = 'testing'
    DEBUG = False
    TESTING = True

    # Test database (in-memory SQLite by default)
    SQLALCHEMY_DATABASE_URI = os.environ.get('TEST_DATABASE_URL', 'sqlite:///:memory:')

    SECRET_KEY = 'test-secret-key'
    JWT_SECRET_KEY = 'test-jwt-secret-key-with-enough-length'

    # Simple in-memory cache for testing
    CACHE_TYPE = 'NullCache'
    CACHE_DEFAULT_TIMEOUT = 60

    # Disable rate limiting in tests
    RATELIMIT_ENABLED = False

    # Disable metrics in testing
    METRICS_ENABLED = False

    # Testing-specific logging - minimize noise but capture errors
    LOG_LEVEL = 'ERROR'
    LOG_TO_FILE = False

    CMS_DEFAULT_LOCALE = 'en'
    CMS_SUPPORTED_LOCALES = 'en,es,fr'

    # Deliver webhooks inline so tests can assert on delivery rows
    WEBHOOKS_ASYNC = False
    WEBHOOK_MAX_RETRIES = 2
    WEBHOOK_RETRY_BACKOFF_SECONDS = 0

    OPENAI_API_KEY = 'test-openai-key'
    ANTHROPIC_API_KEY = 'test-anthropic-key'
    AI_MAX_RETRIES = 0

    # Keep the test database and locale set independent of the host environment
    ENV_OVERRIDES = {
        name: key for name, key in Config.ENV_OVERRIDES.items()
        if name not in ('DATABASE_URL', 'DEFAULT_LOCALE', 'SUPPORTED_LOCALES', 'REDIS_URL')
    }
