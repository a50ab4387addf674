"""
Core utility functions for the CMS.
"""

from .string import (
    slugify,
    generate_random_string,
    is_valid_email,
    strip_tags,
    sanitize_html,
)

__all__ = [
    'slugify',
    'generate_random_string',
    'is_valid_email',
    'strip_tags',
    'sanitize_html',
]
