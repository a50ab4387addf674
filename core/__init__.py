"""
Core package for the CMS.

This package contains the foundation the rest of the application builds on:
- Application factory for creating Flask instances (``core.factory``)
- The CmsError hierarchy rendered by the API error handlers
- Logging setup with optional Sentry integration (``core.logging``)
- The background publisher for scheduled posts (``core.scheduler``)
- String helpers for slugs, emails and HTML sanitizing (``core.utils``)

Submodules are imported directly (``from core.factory import create_app``);
only the exception types are re-exported here.
"""

import logging

from .exceptions import (
    CmsError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)

# Configure module logger
logger = logging.getLogger(__name__)

# Version information
__version__ = '1.0.0'

__all__ = [
    '__version__',
    'CmsError',
    'ConflictError',
    'ForbiddenError',
    'NotFoundError',
    'UpstreamError',
    'ValidationError',
]
