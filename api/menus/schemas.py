"""Schemas for menus and menu items."""

from marshmallow import fields, validate

from api.common import BaseSchema
from models.content.menu import MenuItem


class MenuSchema(BaseSchema):
    name = fields.String(required=True, validate=validate.Length(min=1, max=100))
    slug = fields.String(allow_none=True, validate=validate.Length(max=100))
    locale = fields.String(allow_none=True)


class MenuUpdateSchema(BaseSchema):
    name = fields.String(validate=validate.Length(min=1, max=100))
    slug = fields.String(validate=validate.Length(min=1, max=100))
    locale = fields.String(allow_none=True)


class MenuItemSchema(BaseSchema):
    label = fields.String(required=True, validate=validate.Length(min=1, max=255))
    type = fields.String(load_default=MenuItem.TYPE_CUSTOM, validate=validate.OneOf(MenuItem.VALID_TYPES))
    kind = fields.String(load_default=MenuItem.KIND_ITEM, validate=validate.OneOf(MenuItem.VALID_KINDS))
    post_id = fields.Integer(allow_none=True)
    custom_url = fields.String(allow_none=True, validate=validate.Length(max=500))
    parent_id = fields.Integer(allow_none=True)
    locale = fields.String(allow_none=True)
    anchor = fields.String(allow_none=True)
    target = fields.String(allow_none=True)
    rel = fields.String(allow_none=True)
    order_index = fields.Integer(allow_none=True)


class MenuItemUpdateSchema(BaseSchema):
    label = fields.String(validate=validate.Length(min=1, max=255))
    type = fields.String(validate=validate.OneOf(MenuItem.VALID_TYPES))
    kind = fields.String(validate=validate.OneOf(MenuItem.VALID_KINDS))
    post_id = fields.Integer(allow_none=True)
    custom_url = fields.String(allow_none=True, validate=validate.Length(max=500))
    parent_id = fields.Integer(allow_none=True)
    locale = fields.String(allow_none=True)
    anchor = fields.String(allow_none=True)
    target = fields.String(allow_none=True)
    rel = fields.String(allow_none=True)
    order_index = fields.Integer()


class MenuReorderSchema(BaseSchema):
    items = fields.List(fields.Dict(), required=True)


menu_schema = MenuSchema()
menu_update_schema = MenuUpdateSchema()
menu_item_schema = MenuItemSchema()
menu_item_update_schema = MenuItemUpdateSchema()
menu_reorder_schema = MenuReorderSchema()
