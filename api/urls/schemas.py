"""Schemas for URL patterns and redirects."""

from marshmallow import fields, validate

from api.common import BaseSchema
from models.content.url import UrlRedirect


class PatternSchema(BaseSchema):
    post_type = fields.String(required=True)
    locale = fields.String(required=True)
    pattern = fields.String(required=True, validate=validate.Length(min=1, max=255))
    is_default = fields.Boolean(load_default=True)


class PatternUpdateSchema(BaseSchema):
    pattern = fields.String(required=True, validate=validate.Length(min=1, max=255))
    is_default = fields.Boolean(allow_none=True)


class RedirectSchema(BaseSchema):
    from_path = fields.String(required=True, validate=validate.Length(min=1, max=500))
    to_path = fields.String(required=True, validate=validate.Length(min=1, max=500))
    http_status = fields.Integer(load_default=301, validate=validate.OneOf(UrlRedirect.VALID_STATUSES))
    locale = fields.String(allow_none=True)
    post_id = fields.Integer(allow_none=True)


class RedirectUpdateSchema(BaseSchema):
    from_path = fields.String(validate=validate.Length(min=1, max=500))
    to_path = fields.String(validate=validate.Length(min=1, max=500))
    http_status = fields.Integer(validate=validate.OneOf(UrlRedirect.VALID_STATUSES))
    locale = fields.String(allow_none=True)


pattern_schema = PatternSchema()
pattern_update_schema = PatternUpdateSchema()
redirect_schema = RedirectSchema()
redirect_update_schema = RedirectUpdateSchema()
