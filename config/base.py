"""
Base configuration class for the CMS.
"""

from datetime import timedelta
import logging
import os
from typing import Any, Dict, List

# Set up module logger
logger = logging.getLogger(__name__)


class Config:
    """
    Configuration management class for the application.

    This class holds the default settings as class attributes, loads overrides
    from environment variables, validates required settings, and derives
    dependent values (such as the parsed locale list) before the application
    starts.

    Class Attributes:
        REQUIRED_VARS (List[str]): Environment variables required outside development
        ENV_OVERRIDES (Dict[str, str]): Environment variable name -> config key
    """

    # Required environment variables - must be set for production
    REQUIRED_VARS: List[str] = [
        'SECRET_KEY',
        'DATABASE_URL',
        'JWT_SECRET_KEY',
    ]

    ENVIRONMENT = 'development'
    DEBUG = False
    TESTING = False
    VERSION = '1.0.0'

    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key')

    # Database configuration
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///cms.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # JWT settings
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', 'dev-jwt-secret')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=8)
    JWT_TOKEN_LOCATION = ['headers']

    # Cache settings
    CACHE_TYPE = 'SimpleCache'
    CACHE_DEFAULT_TIMEOUT = 300

    # Rate limiting
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = 'memory://'
    RATELIMIT_HEADERS_ENABLED = True

    CORS_ORIGINS = '*'

    # Monitoring settings
    METRICS_ENABLED = True
    LOG_LEVEL = 'INFO'
    LOG_DIR = 'logs'
    LOG_TO_FILE = True

    # Locales
    CMS_DEFAULT_LOCALE = 'en'
    CMS_SUPPORTED_LOCALES = 'en'

    # Content
    CMS_REVISION_LIMIT = 20
    CMS_PAGINATION_DEFAULT = 20
    CMS_PAGINATION_MAX = 1000

    # Webhooks
    WEBHOOKS_ENABLED = True
    WEBHOOKS_ASYNC = True
    WEBHOOK_TIMEOUT_MS = 5000
    WEBHOOK_MAX_RETRIES = 3
    WEBHOOK_RETRY_BACKOFF_SECONDS = 1.0

    # Scheduled publishing poll interval
    SCHEDULER_INTERVAL_SECONDS = 60

    # AI providers
    OPENAI_API_KEY = None
    OPENAI_BASE_URL = 'https://api.openai.com/v1'
    ANTHROPIC_API_KEY = None
    ANTHROPIC_BASE_URL = 'https://api.anthropic.com'
    AI_REQUEST_TIMEOUT = 60
    AI_MAX_RETRIES = 2

    ENV_OVERRIDES: Dict[str, str] = {
        'DATABASE_URL': 'SQLALCHEMY_DATABASE_URI',
        'DEFAULT_LOCALE': 'CMS_DEFAULT_LOCALE',
        'SUPPORTED_LOCALES': 'CMS_SUPPORTED_LOCALES',
        'CMS_REVISION_LIMIT': 'CMS_REVISION_LIMIT',
        'WEBHOOKS_ENABLED': 'WEBHOOKS_ENABLED',
        'WEBHOOK_TIMEOUT_MS': 'WEBHOOK_TIMEOUT_MS',
        'WEBHOOK_MAX_RETRIES': 'WEBHOOK_MAX_RETRIES',
        'SCHEDULER_INTERVAL_SECONDS': 'SCHEDULER_INTERVAL_SECONDS',
        'OPENAI_API_KEY': 'OPENAI_API_KEY',
        'ANTHROPIC_API_KEY': 'ANTHROPIC_API_KEY',
        'LOG_LEVEL': 'LOG_LEVEL',
        'CORS_ORIGINS': 'CORS_ORIGINS',
        'REDIS_URL': 'CACHE_REDIS_URL',
    }

    @classmethod
    def init_app(cls, app) -> None:
        """
        Initialize the application with configuration settings.

        Args:
            app: Flask application instance

        Raises:
            ValueError: If required environment variables are missing in production
        """
        app.config.from_object(cls)

        # Load settings from environment variables (highest priority)
        cls._load_from_environment(app)

        # Validate configuration
        cls._validate_configuration(app)

        # Setup derived values and special cases
        cls._setup_derived_values(app)

    @classmethod
    def _load_from_environment(cls, app) -> None:
        """
        Load configuration from environment variables.

        Environment variables take precedence over class defaults. Values
        prefixed with ``CMS_FLASK_`` are copied as-is (minus the prefix).

        Args:
            app: Flask application instance
        """
        for env_name, config_key in cls.ENV_OVERRIDES.items():
            if env_name in os.environ:
                app.config[config_key] = cls._convert_env_value(os.environ[env_name])

        for key, value in os.environ.items():
            if key.startswith('CMS_FLASK_'):
                app.config[key[len('CMS_FLASK_'):]] = cls._convert_env_value(value)

    @staticmethod
    def _convert_env_value(value: str) -> Any:
        """
        Convert environment variable string to appropriate Python type.

        Args:
            value: String value from environment variable

        Returns:
            Value converted to appropriate type (bool, int, float, str)
        """
        if value.lower() in ('true', 'yes'):
            return True
        elif value.lower() in ('false', 'no'):
            return False
        elif value.isdigit():
            return int(value)
        elif value.replace('.', '', 1).isdigit() and value.count('.') == 1:
            return float(value)
        return value

    @classmethod
    def _validate_configuration(cls, app) -> None:
        """
        Validate that all required configuration is present.

        Args:
            app: Flask application instance

        Raises:
            ValueError: If configuration validation fails
        """
        environment = app.config.get('ENVIRONMENT', 'development')

        # Skip strict validation for development and testing
        if environment != 'production':
            return

        missing_vars = [var for var in cls.REQUIRED_VARS if not os.environ.get(var)]
        if missing_vars:
            raise ValueError(f"Missing required environment variables: {', '.join(missing_vars)}")

        if app.config.get('SECRET_KEY') in ('dev', 'dev-secret-key', 'secret', 'changeme'):
            logger.error("Development SECRET_KEY used in production environment")
            raise ValueError("Development SECRET_KEY used in production environment")

    @classmethod
    def _setup_derived_values(cls, app) -> None:
        """
        Set up derived configuration values based on other settings.

        The supported locale list is normalised to a list of lowercase codes
        that always contains the default locale.

        Args:
            app: Flask application instance
        """
        default_locale = str(app.config.get('CMS_DEFAULT_LOCALE') or 'en').strip().lower()
        raw = app.config.get('CMS_SUPPORTED_LOCALES') or default_locale
        if isinstance(raw, str):
            locales = [part.strip().lower() for part in raw.split(',') if part.strip()]
        else:
            locales = [str(part).strip().lower() for part in raw]

        if default_locale not in locales:
            locales.insert(0, default_locale)

        app.config['CMS_DEFAULT_LOCALE'] = default_locale
        app.config['CMS_SUPPORTED_LOCALES'] = locales

        if app.config.get('CACHE_REDIS_URL') and app.config.get('CACHE_TYPE') == 'SimpleCache':
            app.config['CACHE_TYPE'] = 'RedisCache'
        if app.config.get('CACHE_REDIS_URL') and app.config.get('RATELIMIT_STORAGE_URI') == 'memory://':
            app.config['RATELIMIT_STORAGE_URI'] = app.config['CACHE_REDIS_URL']
