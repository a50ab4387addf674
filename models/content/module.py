"""
Module models: reusable content blocks and their placement on posts.

A ModuleInstance holds the props of one content block. Instances scoped to
``post`` belong to exactly one post; instances scoped to ``global`` are shared
by every post that places them and are identified by ``global_slug``.

A PostModule places an instance on a post, in order, and carries per-post
overrides (meaningful for global instances) plus the staging columns and
flags of the review and AI review layers.
"""

from typing import Any, Dict, Optional

from extensions import db
from models.base import BaseModel


class ModuleInstance(BaseModel):
    """A content block with live, review and AI review props."""
    __tablename__ = 'module_instances'

    SCOPE_POST = 'post'
    SCOPE_GLOBAL = 'global'
    VALID_SCOPES = [SCOPE_POST, SCOPE_GLOBAL]

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(100), nullable=False, index=True)
    scope = db.Column(db.String(20), nullable=False, default=SCOPE_POST, index=True)
    global_slug = db.Column(db.String(150), nullable=True, unique=True)
    global_label = db.Column(db.String(255), nullable=True)

    props = db.Column(db.JSON, nullable=False, default=dict)
    review_props = db.Column(db.JSON, nullable=True)
    ai_review_props = db.Column(db.JSON, nullable=True)

    post_modules = db.relationship('PostModule', back_populates='module_instance')

    def __init__(self, type: str, scope: str = SCOPE_POST, props: Optional[Dict[str, Any]] = None,
                 global_slug: Optional[str] = None, global_label: Optional[str] = None,
                 review_props: Optional[Dict[str, Any]] = None,
                 ai_review_props: Optional[Dict[str, Any]] = None):
        if scope not in self.VALID_SCOPES:
            raise ValueError(f"Invalid module scope: {scope}")
        if scope == self.SCOPE_GLOBAL and not global_slug:
            raise ValueError("Global modules require a global_slug")
        self.type = type
        self.scope = scope
        self.props = dict(props or {})
        self.global_slug = global_slug if scope == self.SCOPE_GLOBAL else None
        self.global_label = global_label
        self.review_props = review_props
        self.ai_review_props = ai_review_props

    @property
    def is_global(self) -> bool:
        return self.scope == self.SCOPE_GLOBAL

    @property
    def usage_count(self) -> int:
        return PostModule.query.filter_by(module_id=self.id).count()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'scope': self.scope,
            'global_slug': self.global_slug,
            'global_label': self.global_label,
            'props': self.props or {},
            'review_props': self.review_props,
            'ai_review_props': self.ai_review_props,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        label = self.global_slug or self.id
        return f'<ModuleInstance {self.type}:{label} ({self.scope})>'


class PostModule(BaseModel):
    """Placement of a module instance on a post, with per-layer overrides and flags."""
    __tablename__ = 'post_modules'

    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('posts.id', ondelete='CASCADE'), nullable=False, index=True)
    module_id = db.Column(db.Integer, db.ForeignKey('module_instances.id', ondelete='CASCADE'),
                          nullable=False, index=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    overrides = db.Column(db.JSON, nullable=True)
    review_overrides = db.Column(db.JSON, nullable=True)
    ai_review_overrides = db.Column(db.JSON, nullable=True)

    locked = db.Column(db.Boolean, nullable=False, default=False)
    admin_label = db.Column(db.String(255), nullable=True)

    review_added = db.Column(db.Boolean, nullable=False, default=False)
    review_deleted = db.Column(db.Boolean, nullable=False, default=False)
    ai_review_added = db.Column(db.Boolean, nullable=False, default=False)
    ai_review_deleted = db.Column(db.Boolean, nullable=False, default=False)

    post = db.relationship('Post', back_populates='post_modules')
    module_instance = db.relationship('ModuleInstance', back_populates='post_modules')

    def __init__(self, **kwargs) -> None:
        kwargs.setdefault('order_index', 0)
        kwargs.setdefault('locked', False)
        for flag in ('review_added', 'review_deleted', 'ai_review_added', 'ai_review_deleted'):
            kwargs.setdefault(flag, False)
        super(PostModule, self).__init__(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        instance = self.module_instance
        return {
            'id': self.id,
            'post_id': self.post_id,
            'module_id': self.module_id,
            'type': instance.type if instance else None,
            'scope': instance.scope if instance else None,
            'global_slug': instance.global_slug if instance else None,
            'order_index': self.order_index,
            'overrides': self.overrides,
            'review_overrides': self.review_overrides,
            'ai_review_overrides': self.ai_review_overrides,
            'locked': self.locked,
            'admin_label': self.admin_label,
            'review_added': self.review_added,
            'review_deleted': self.review_deleted,
            'ai_review_added': self.ai_review_added,
            'ai_review_deleted': self.ai_review_deleted,
        }

    def __repr__(self) -> str:
        return f'<PostModule {self.id} post={self.post_id} module={self.module_id} #{self.order_index}>'
