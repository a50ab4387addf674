"""
Development environment configuration for the CMS.
"""

from .base import Config


class DevelopmentConfig(Config):
    """
    Configuration for development environment.

    Enables debugging and verbose logging, and polls for scheduled posts
    more often than production does.
    """

    ENVIRONMENT = 'development'
    DEBUG = True
    TESTING = False

    # Development-specific logging
    LOG_LEVEL = 'DEBUG'

    SQLALCHEMY_ECHO = False

    # Publish scheduled posts quickly while developing
    SCHEDULER_INTERVAL_SECONDS = 30

    # Keep Prometheus off in the reloader
    METRICS_ENABLED = False
