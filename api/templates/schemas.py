"""Schemas for templates."""

from marshmallow import fields, validate

from api.common import BaseSchema


class TemplateModuleSchema(BaseSchema):
    type = fields.String(required=True)
    scope = fields.String(load_default='post', validate=validate.OneOf(['post', 'local', 'global']))
    global_slug = fields.String(allow_none=True)
    props = fields.Dict(allow_none=True)
    order_index = fields.Integer()
    locked = fields.Boolean(load_default=False)


class TemplateSchema(BaseSchema):
    name = fields.String(required=True, validate=validate.Length(min=1, max=100))
    post_type = fields.String(required=True)
    description = fields.String(allow_none=True)
    locked = fields.Boolean(load_default=False)
    modules = fields.List(fields.Nested(TemplateModuleSchema), load_default=list)


class TemplateUpdateSchema(BaseSchema):
    name = fields.String(validate=validate.Length(min=1, max=100))
    description = fields.String(allow_none=True)
    locked = fields.Boolean()
    modules = fields.List(fields.Nested(TemplateModuleSchema))


template_schema = TemplateSchema()
template_update_schema = TemplateUpdateSchema()
