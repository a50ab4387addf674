"""
Shared helpers for the API blueprints.

Provides the base marshmallow schema, request loading helpers and the
success response envelope.
"""

from typing import Any, Dict, Optional, Type

from flask import current_app, jsonify, request
from marshmallow import EXCLUDE, Schema, pre_load

from core.exceptions import CmsError


class BaseSchema(Schema):
    """Base schema with common configuration."""

    class Meta:
        """Schema metadata."""
        # Ignore unknown fields instead of rejecting the request
        unknown = EXCLUDE
        ordered = True

    @pre_load
    def strip_strings(self, data, **kwargs):
        if isinstance(data, dict):
            return {k: v.strip() if isinstance(v, str) else v for k, v in data.items()}
        return data


def load_json(schema: Schema, partial: bool = False) -> Dict[str, Any]:
    """
    Validate the JSON body of the current request.

    Raises:
        marshmallow.ValidationError: Rendered as a 400 by the app error handler
    """
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise CmsError("Request body must be a JSON object", status_code=400)
    return schema.load(payload, partial=partial)


def load_args(schema: Schema) -> Dict[str, Any]:
    """Validate the query string of the current request."""
    return schema.load(request.args.to_dict())


def page_args() -> Dict[str, int]:
    """``page`` and ``per_page`` from the query string, clamped to configured limits."""
    try:
        page = max(1, int(request.args.get('page', 1)))
        per_page = int(request.args.get('per_page', current_app.config.get('CMS_PAGINATION_DEFAULT', 20)))
    except ValueError:
        raise CmsError("page and per_page must be integers", status_code=400)
    per_page = max(1, min(per_page, current_app.config.get('CMS_PAGINATION_MAX', 1000)))
    return {'page': page, 'per_page': per_page}


def success(data: Any = None, status_code: int = 200, meta: Optional[Dict[str, Any]] = None,
            message: Optional[str] = None):
    """Build the standard success response."""
    body: Dict[str, Any] = {'status': 'success', 'data': data}
    if meta is not None:
        body['meta'] = meta
    if message:
        body['message'] = message
    return jsonify(body), status_code


def paginated(result: Dict[str, Any], schema_cls: Optional[Type[Schema]] = None):
    """Render a ``paginate_query`` result."""
    items = result['items']
    data = [item.to_dict() for item in items] if schema_cls is None else schema_cls(many=True).dump(items)
    return success(data, meta=result['meta'])
