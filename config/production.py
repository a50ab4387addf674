"""
Production environment configuration for the CMS.
"""

from datetime import timedelta

from .base import Config


class ProductionConfig(Config):
    """
    Configuration for production environment.

    Requires real secrets from the environment (see ``Config.REQUIRED_VARS``)
    and uses pooled database connections.
    """

    ENVIRONMENT = 'production'
    DEBUG = False
    TESTING = False

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_recycle': 280,
        'pool_pre_ping': True,
    }

    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=2)

    LOG_LEVEL = 'INFO'

    SCHEDULER_INTERVAL_SECONDS = 60
