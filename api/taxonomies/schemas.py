"""Schemas for taxonomies and terms."""

from marshmallow import fields, validate

from api.common import BaseSchema


class TaxonomySchema(BaseSchema):
    name = fields.String(required=True, validate=validate.Length(min=1, max=100))
    slug = fields.String(allow_none=True, validate=validate.Length(max=100))
    hierarchical = fields.Boolean(load_default=False)
    post_types = fields.List(fields.String(), allow_none=True)


class TaxonomyUpdateSchema(BaseSchema):
    name = fields.String(validate=validate.Length(min=1, max=100))
    slug = fields.String(validate=validate.Length(min=1, max=100))
    hierarchical = fields.Boolean()
    post_types = fields.List(fields.String(), allow_none=True)


class TermSchema(BaseSchema):
    name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    slug = fields.String(allow_none=True, validate=validate.Length(max=255))
    parent_id = fields.Integer(allow_none=True)
    description = fields.String(allow_none=True)
    order_index = fields.Integer(load_default=0)


class TermUpdateSchema(BaseSchema):
    name = fields.String(validate=validate.Length(min=1, max=255))
    slug = fields.String(validate=validate.Length(min=1, max=255))
    parent_id = fields.Integer(allow_none=True)
    description = fields.String(allow_none=True)
    order_index = fields.Integer()


taxonomy_schema = TaxonomySchema()
taxonomy_update_schema = TaxonomyUpdateSchema()
term_schema = TermSchema()
term_update_schema = TermUpdateSchema()
