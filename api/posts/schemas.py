"""
Schema definitions for the Posts API.

These schemas validate request bodies for post creation, mode-aware saves,
bulk actions, reordering, review approval, variations, translations and
post modules.
"""

from datetime import timezone

from marshmallow import fields, validate

from api.common import BaseSchema
from models.content.post import Post
from services.authorization_service import BULK_ACTIONS

MODE_VALUES = ['publish', 'source', 'approved', 'review', 'ai-review', 'ai_review']


class PostCreateSchema(BaseSchema):
    """Schema for creating a new post."""
    type = fields.String(required=True, validate=validate.Length(min=1, max=50),
                         error_messages={"required": "Post type is required"})
    locale = fields.String(required=True, validate=validate.Length(min=2, max=10),
                           error_messages={"required": "Locale is required"})
    title = fields.String(required=True, validate=validate.Length(min=1, max=255),
                          error_messages={"required": "Title is required"})
    slug = fields.String(validate=validate.Length(max=255))
    status = fields.String(load_default=Post.STATUS_DRAFT, validate=validate.OneOf(Post.VALID_STATUSES))
    excerpt = fields.String(allow_none=True)
    meta_title = fields.String(allow_none=True, validate=validate.Length(max=255))
    meta_description = fields.String(allow_none=True, validate=validate.Length(max=500))
    canonical_url = fields.String(allow_none=True, validate=validate.Length(max=500))
    robots_json = fields.Dict(allow_none=True)
    jsonld_overrides = fields.Dict(allow_none=True)
    template_id = fields.Integer(allow_none=True)
    parent_id = fields.Integer(allow_none=True)
    scheduled_at = fields.AwareDateTime(allow_none=True, default_timezone=timezone.utc)
    seed_modules = fields.Boolean(load_default=True)


class PostSaveSchema(BaseSchema):
    """Schema for saving a post in publish, review or ai-review mode."""
    mode = fields.String(load_default='publish', validate=validate.OneOf(MODE_VALUES))
    slug = fields.String(validate=validate.Length(min=1, max=255))
    title = fields.String(validate=validate.Length(min=1, max=255))
    status = fields.String(validate=validate.OneOf(Post.VALID_STATUSES))
    excerpt = fields.String(allow_none=True)
    meta_title = fields.String(allow_none=True, validate=validate.Length(max=255))
    meta_description = fields.String(allow_none=True, validate=validate.Length(max=500))
    canonical_url = fields.String(allow_none=True, validate=validate.Length(max=500))
    robots_json = fields.Dict(allow_none=True)
    jsonld_overrides = fields.Dict(allow_none=True)
    parent_id = fields.Integer(allow_none=True)
    order_index = fields.Integer()
    author_id = fields.Integer(allow_none=True)
    template_id = fields.Integer(allow_none=True)
    scheduled_at = fields.AwareDateTime(allow_none=True, default_timezone=timezone.utc)
    custom_fields = fields.List(fields.Dict())
    taxonomy_term_ids = fields.List(fields.Integer())
    modules = fields.List(fields.Dict())


class ReviewActionSchema(BaseSchema):
    """Schema for approving or rejecting a draft layer."""
    mode = fields.String(required=True, validate=validate.OneOf(['review', 'ai-review', 'ai_review']))


class BulkActionSchema(BaseSchema):
    """Schema for bulk actions."""
    ids = fields.List(fields.Integer(), required=True, validate=validate.Length(min=1))
    action = fields.String(required=True, validate=validate.OneOf(BULK_ACTIONS))


class ReorderItemSchema(BaseSchema):
    id = fields.Integer(required=True)
    order_index = fields.Integer(required=True)
    parent_id = fields.Integer(allow_none=True)


class ReorderScopeSchema(BaseSchema):
    type = fields.String(required=True)
    locale = fields.String(required=True)


class ReorderSchema(BaseSchema):
    """Schema for reordering sibling posts."""
    scope = fields.Nested(ReorderScopeSchema, required=True)
    items = fields.List(fields.Nested(ReorderItemSchema), required=True)


class VariationCreateSchema(BaseSchema):
    """Schema for creating an A/B variation."""
    variation = fields.String(required=True, validate=validate.Regexp(r'^[A-Za-z0-9]{1,10}$'))


class TranslationCreateSchema(BaseSchema):
    """Schema for creating a translation."""
    locale = fields.String(required=True, validate=validate.Length(min=2, max=10))
    slug = fields.String(allow_none=True)
    title = fields.String(allow_none=True)
    meta_title = fields.String(allow_none=True)
    meta_description = fields.String(allow_none=True)


class ModuleAddSchema(BaseSchema):
    """Schema for placing a module on a post."""
    type = fields.String(required=True)
    scope = fields.String(load_default='post', validate=validate.OneOf(['post', 'local', 'global']))
    props = fields.Dict(allow_none=True)
    global_slug = fields.String(allow_none=True)
    order_index = fields.Integer(allow_none=True)
    locked = fields.Boolean(load_default=False)
    admin_label = fields.String(allow_none=True)
    mode = fields.String(load_default='publish', validate=validate.OneOf(MODE_VALUES))


class ModuleUpdateSchema(BaseSchema):
    """Schema for editing a placed module."""
    mode = fields.String(load_default='publish', validate=validate.OneOf(MODE_VALUES))
    props = fields.Dict()
    overrides = fields.Dict(allow_none=True)
    order_index = fields.Integer()
    locked = fields.Boolean()
    admin_label = fields.String(allow_none=True)


class ModuleReorderSchema(BaseSchema):
    """Schema for reordering a post's modules."""
    items = fields.List(fields.Dict(), required=True)


post_create_schema = PostCreateSchema()
post_save_schema = PostSaveSchema()
review_action_schema = ReviewActionSchema()
bulk_action_schema = BulkActionSchema()
reorder_schema = ReorderSchema()
variation_create_schema = VariationCreateSchema()
translation_create_schema = TranslationCreateSchema()
module_add_schema = ModuleAddSchema()
module_update_schema = ModuleUpdateSchema()
module_reorder_schema = ModuleReorderSchema()
