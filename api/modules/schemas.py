"""Schemas for global module instances."""

from marshmallow import fields, validate

from api.common import BaseSchema


class GlobalCreateSchema(BaseSchema):
    type = fields.String(required=True)
    global_slug = fields.String(required=True, validate=validate.Regexp(
        r'^[a-z0-9]+(?:[-_][a-z0-9]+)*$', error="Slug may only contain lowercase letters, digits, - and _"))
    global_label = fields.String(allow_none=True, validate=validate.Length(max=255))
    props = fields.Dict(allow_none=True)


class GlobalUpdateSchema(BaseSchema):
    props = fields.Dict(allow_none=True)
    global_label = fields.String(allow_none=True, validate=validate.Length(max=255))
    mode = fields.String(load_default='publish')


global_create_schema = GlobalCreateSchema()
global_update_schema = GlobalUpdateSchema()
