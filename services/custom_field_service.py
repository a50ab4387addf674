"""
Custom field values of posts.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.content.custom_field import PostCustomFieldValue
from models.content.post import Post

logger = logging.getLogger(__name__)


def unwrap_json(value: Any) -> Any:
    """
    Undo accidental JSON double encoding.

    Strings that look like a JSON object or array are parsed (repeatedly),
    and a single-element list holding a JSON array string is unwrapped.
    """
    if isinstance(value, str):
        trimmed = value.strip()
        if (trimmed.startswith('[') and trimmed.endswith(']')) or \
                (trimmed.startswith('{') and trimmed.endswith('}')):
            try:
                return unwrap_json(json.loads(trimmed))
            except ValueError:
                return value
    if isinstance(value, list) and len(value) == 1 and isinstance(value[0], str):
        trimmed = value[0].strip()
        if trimmed.startswith('[') and trimmed.endswith(']'):
            try:
                parsed = json.loads(trimmed)
            except ValueError:
                return value
            if isinstance(parsed, list):
                return unwrap_json(parsed)
    return value


class CustomFieldService:
    """Read and upsert post custom field values."""

    @staticmethod
    def get_values(post: Post) -> Dict[str, Any]:
        return {cf.field_slug: cf.value for cf in post.custom_field_values}

    @staticmethod
    def upsert_custom_fields(post: Post, fields: Optional[List[Dict[str, Any]]],
                             commit: bool = True) -> int:
        """
        Insert or update values by ``(post_id, field_slug)``.

        Args:
            post: Target post
            fields: Items of ``{"slug": ..., "value": ...}``; items without a slug are skipped
            commit: Whether to commit

        Returns:
            int: Number of values written
        """
        entries = [
            (str(item.get('slug')).strip(), unwrap_json(item.get('value')))
            for item in (fields or [])
            if isinstance(item, dict) and item.get('slug') and str(item.get('slug')).strip()
        ]
        if not entries:
            return 0

        existing = {cf.field_slug: cf for cf in post.custom_field_values}
        try:
            for slug, value in entries:
                row = existing.get(slug)
                if row is None:
                    row = PostCustomFieldValue(field_slug=slug, value=value)
                    post.custom_field_values.append(row)
                    existing[slug] = row
                else:
                    row.value = value
            if commit:
                db.session.commit()
            else:
                db.session.flush()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to upsert custom fields of post %s: %s", post.id, e)
            raise
        return len(entries)
