"""
Configuration package for the CMS.

This package provides configuration management for the development, testing
and production environments, plus the helper used by the application factory
to pick the right configuration class.
"""

import logging
import os
from typing import Optional, Type

# Initialize logger
logger = logging.getLogger(__name__)

# Import configuration classes
from .base import Config
from .development import DevelopmentConfig
from .testing import TestingConfig
from .production import ProductionConfig

ENVIRONMENT_DEVELOPMENT = 'development'
ENVIRONMENT_TESTING = 'testing'
ENVIRONMENT_PRODUCTION = 'production'

# Configuration registry mapping environment names to config classes
CONFIG_REGISTRY = {
    ENVIRONMENT_DEVELOPMENT: DevelopmentConfig,
    ENVIRONMENT_TESTING: TestingConfig,
    ENVIRONMENT_PRODUCTION: ProductionConfig,
}


def get_config(env_name: Optional[str] = None) -> Type[Config]:
    """
    Get the configuration class for the specified environment.

    Args:
        env_name: Environment name (development, testing, production).
                  If None, uses the ENVIRONMENT or FLASK_ENV variables
                  and defaults to 'development'

    Returns:
        Config class appropriate for the specified environment
    """
    env_name = env_name or detect_environment()

    # Normalize the name to handle various formats
    env_name = env_name.lower().replace('-', '_')

    config_class = CONFIG_REGISTRY.get(env_name)
    if not config_class:
        logger.warning(f"Unknown environment name: {env_name}, using development config")
        config_class = DevelopmentConfig

    return config_class


def detect_environment() -> str:
    """
    Detect the current environment from environment variables.

    Returns:
        String containing the environment name
    """
    environment = os.environ.get('ENVIRONMENT') or os.environ.get('FLASK_ENV')

    if environment not in CONFIG_REGISTRY:
        if environment is not None:
            logger.warning(f"Unknown environment '{environment}', falling back to development")
        environment = ENVIRONMENT_DEVELOPMENT

    return environment


__all__ = [
    'Config',
    'DevelopmentConfig',
    'TestingConfig',
    'ProductionConfig',
    'CONFIG_REGISTRY',
    'get_config',
    'detect_environment',
]
