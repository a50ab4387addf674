"""
String utility functions for the CMS.

This module provides reusable string helpers:
- Slugification for URL-friendly strings
- Random suffixes for generated slugs
- Email validation
- HTML sanitizing and tag stripping with bleach

These utilities are used across models and services to keep slug and
validation behavior consistent.
"""

import re
import secrets
import unicodedata

import bleach

EMAIL_PATTERN = r'^[^\s@]+@[^\s@]+\.[^\s@]+$'

DEFAULT_RANDOM_STRING_CHARS = "abcdefghijklmnopqrstuvwxyz0123456789"

# Compiled regexes for better performance
EMAIL_REGEX = re.compile(EMAIL_PATTERN)


def slugify(text: str, separator: str = "-") -> str:
    """
    Convert text to URL-friendly slug.

    Diacritics are stripped, everything is lowercased, and runs of spaces,
    underscores and dashes collapse into a single separator.

    Args:
        text: String to convert to slug
        separator: Character to use between words (default: '-')

    Returns:
        URL-friendly slug string
    """
    if not text:
        return ""

    text = unicodedata.normalize('NFKD', text.lower())
    text = ''.join(c for c in text if not unicodedata.combining(c))
    text = ''.join(c for c in text if ord(c) < 128)

    text = re.sub(r'[^\w\s-]', '', text)
    text = re.sub(r'[\s_-]+', separator, text)
    return text.strip(separator)


def generate_random_string(length: int = 6, chars: str = DEFAULT_RANDOM_STRING_CHARS) -> str:
    """
    Generate a random string of specified length.

    Args:
        length: Length of the random string
        chars: Character set to use

    Returns:
        Random string
    """
    return ''.join(secrets.choice(chars) for _ in range(length))


def is_valid_email(email: str) -> bool:
    """Check if string looks like an email address."""
    if not email:
        return False
    return bool(EMAIL_REGEX.match(email))


DEFAULT_ALLOWED_TAGS = [
    'a', 'abbr', 'b', 'blockquote', 'br', 'code', 'em', 'h2', 'h3', 'h4',
    'i', 'li', 'ol', 'p', 'pre', 'strong', 'ul',
]

DEFAULT_ALLOWED_ATTRIBUTES = {
    'a': ['href', 'title', 'rel', 'target'],
    'abbr': ['title'],
}


def strip_tags(text: str) -> str:
    """Remove every HTML tag from ``text``."""
    if not text:
        return ""
    return bleach.clean(text, tags=[], strip=True).strip()


def sanitize_html(html_content: str, allowed_tags=None, allowed_attributes=None) -> str:
    """
    Sanitize HTML content, keeping only safe tags and attributes.

    Args:
        html_content: HTML to sanitize
        allowed_tags: Tags to keep (defaults to DEFAULT_ALLOWED_TAGS)
        allowed_attributes: Mapping of tag to allowed attributes

    Returns:
        Sanitized HTML
    """
    if not html_content:
        return ""
    return bleach.clean(
        html_content,
        tags=allowed_tags if allowed_tags is not None else DEFAULT_ALLOWED_TAGS,
        attributes=allowed_attributes if allowed_attributes is not None else DEFAULT_ALLOWED_ATTRIBUTES,
        strip=True,
        strip_comments=True,
    )
