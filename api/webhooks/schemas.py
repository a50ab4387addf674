"""Schemas for webhook endpoints."""

from marshmallow import fields, validate

from api.common import BaseSchema


class WebhookSchema(BaseSchema):
    name = fields.String(required=True, validate=validate.Length(min=1, max=100))
    url = fields.Url(required=True, schemes={'http', 'https'}, require_tld=False)
    events = fields.List(fields.String(), load_default=None)
    secret = fields.String(allow_none=True, validate=validate.Length(max=255))
    active = fields.Boolean(load_default=True)
    headers = fields.Dict(keys=fields.String(), values=fields.String(), allow_none=True)
    timeout_ms = fields.Integer(allow_none=True, validate=validate.Range(min=100, max=60000))
    max_retries = fields.Integer(allow_none=True, validate=validate.Range(min=1, max=10))


class WebhookUpdateSchema(BaseSchema):
    name = fields.String(validate=validate.Length(min=1, max=100))
    url = fields.Url(schemes={'http', 'https'}, require_tld=False)
    events = fields.List(fields.String())
    secret = fields.String(allow_none=True, validate=validate.Length(max=255))
    active = fields.Boolean()
    headers = fields.Dict(keys=fields.String(), values=fields.String(), allow_none=True)
    timeout_ms = fields.Integer(allow_none=True, validate=validate.Range(min=100, max=60000))
    max_retries = fields.Integer(allow_none=True, validate=validate.Range(min=1, max=10))


webhook_schema = WebhookSchema()
webhook_update_schema = WebhookUpdateSchema()
