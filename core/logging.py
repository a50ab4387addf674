import logging
import logging.handlers
import json
import os
from datetime import datetime, timezone
from typing import Any, Dict
from flask import Flask, request, g, has_request_context, has_app_context
import sentry_sdk


class RequestContextFilter(logging.Filter):
    """Attach request id and user id to every record so formatters can use them."""

    def filter(self, record: logging.LogRecord) -> bool:
        in_app = has_app_context()
        record.request_id = getattr(g, 'request_id', '-') if in_app else '-'
        record.user_id = getattr(g, 'user_id', None) if in_app else None
        return True


class JsonFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def __init__(self, environment: str = 'production', version: str = '1.0.0') -> None:
        super().__init__()
        self.environment = environment
        self.version = version

    def format(self, record) -> str:
        in_request = has_request_context()
        log_data: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name,
            'request_id': getattr(record, 'request_id', None),
            'user_id': getattr(record, 'user_id', None),
            'path': request.path if in_request else None,
            'method': request.method if in_request else None,
            'ip': request.remote_addr if in_request else None,
            'environment': self.environment,
            'version': self.version
        }

        # Add error info if present
        if record.exc_info:
            log_data['error'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info)
            }

        return json.dumps(log_data, default=str)


def setup_app_logging(app: Flask) -> None:
    """Configure centralized application logging."""

    context_filter = RequestContextFilter()

    # Console output
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(
        '%(asctime)s [%(request_id)s] %(levelname)s %(name)s: %(message)s'
    ))
    handlers = [console]

    # Size-based rotation outside of tests
    if app.config.get('LOG_TO_FILE', True) and not app.config.get('TESTING'):
        log_dir = app.config.get('LOG_DIR', 'logs')
        os.makedirs(log_dir, exist_ok=True)
        json_formatter = JsonFormatter(
            environment=app.config.get('ENVIRONMENT', 'production'),
            version=app.config.get('VERSION', '1.0.0')
        )

        main_log = logging.handlers.RotatingFileHandler(
            filename=os.path.join(log_dir, 'app.log'),
            maxBytes=10485760,  # 10MB
            backupCount=10,
            encoding='utf-8'
        )
        error_log = logging.handlers.RotatingFileHandler(
            filename=os.path.join(log_dir, 'error.log'),
            maxBytes=10485760,
            backupCount=10,
            encoding='utf-8'
        )
        error_log.setLevel(logging.ERROR)
        for handler in (main_log, error_log):
            handler.setFormatter(json_formatter)
            handlers.append(handler)

    app.logger.handlers = []
    for handler in handlers:
        handler.addFilter(context_filter)
        app.logger.addHandler(handler)

    level = app.config.get('LOG_LEVEL', 'INFO')
    app.logger.setLevel(level)

    # Module loggers (services.*, models.*, ...) share the app handlers
    for name in ('services', 'models', 'api', 'core', 'cli'):
        package_logger = logging.getLogger(name)
        package_logger.handlers = list(handlers)
        package_logger.setLevel(level)
        package_logger.propagate = False

    # Configure Sentry if DSN provided
    if app.config.get('SENTRY_DSN'):
        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            environment=app.config.get('ENVIRONMENT', 'production'),
            traces_sample_rate=app.config.get('SENTRY_TRACES_SAMPLE_RATE', 0.2)
        )
