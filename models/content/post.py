"""
Post model module for content management.

This module defines the Post model which represents pages, blog entries,
documentation articles, profiles and other content items. A post belongs to
one locale and optionally to a translation family, an A/B group and a parent
post (for hierarchical post types).

Besides the live ("source") columns a post carries two JSON staging columns,
``review_draft`` and ``ai_review_draft``, which hold the post-level fields of
pending human and AI edits. Module level staging lives on ModuleInstance and
PostModule.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import or_

from extensions import db
from models.base import BaseModel, SoftDeleteMixin, utcnow


class Post(BaseModel, SoftDeleteMixin):
    """
    Post model for the CMS.

    Represents a localized content item with publication status, SEO
    fields, hierarchy, translation family and A/B testing metadata.
    """
    __tablename__ = 'posts'
    __table_args__ = (
        db.UniqueConstraint('slug', 'locale', name='uq_posts_slug_locale'),
        db.Index('ix_posts_type_locale_status', 'type', 'locale', 'status'),
    )

    # Core fields
    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(50), nullable=False, index=True)
    slug = db.Column(db.String(255), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    locale = db.Column(db.String(10), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default='draft', index=True)
    excerpt = db.Column(db.Text)

    # SEO fields
    meta_title = db.Column(db.String(255))
    meta_description = db.Column(db.String(500))
    canonical_url = db.Column(db.String(500))
    robots_json = db.Column(db.JSON)
    jsonld_overrides = db.Column(db.JSON)

    # Structure
    parent_id = db.Column(db.Integer, db.ForeignKey('posts.id', ondelete='SET NULL'), nullable=True, index=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    template_id = db.Column(db.Integer, db.ForeignKey('templates.id', ondelete='SET NULL'), nullable=True)

    # Ownership
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    author_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    # Translation family and A/B group
    translation_of_id = db.Column(db.Integer, db.ForeignKey('posts.id', ondelete='CASCADE'),
                                  nullable=True, index=True)
    ab_group_id = db.Column(db.Integer, nullable=True, index=True)
    ab_variation = db.Column(db.String(10), nullable=True)

    # Staging columns
    review_draft = db.Column(db.JSON, nullable=True)
    ai_review_draft = db.Column(db.JSON, nullable=True)

    # Timestamps
    # created_at, updated_at and deleted_at inherited from the mixins
    published_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    scheduled_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    # Relationships
    user = db.relationship('User', foreign_keys=[user_id])
    author = db.relationship('User', foreign_keys=[author_id])
    template = db.relationship('Template')
    parent = db.relationship('Post', remote_side=[id], foreign_keys=[parent_id],
                             backref=db.backref('children', lazy='dynamic'))
    translation_of = db.relationship('Post', remote_side=[id], foreign_keys=[translation_of_id],
                                     backref=db.backref('translations', lazy='dynamic'))
    post_modules = db.relationship('PostModule', back_populates='post',
                                   cascade='all, delete-orphan',
                                   order_by='PostModule.order_index')
    custom_field_values = db.relationship('PostCustomFieldValue', back_populates='post',
                                          cascade='all, delete-orphan')
    terms = db.relationship('TaxonomyTerm', secondary='post_taxonomy_terms',
                            backref=db.backref('posts', lazy='dynamic'))
    revisions = db.relationship('PostRevision', back_populates='post',
                                cascade='all, delete-orphan',
                                order_by='PostRevision.id.desc()')

    # Status constants
    STATUS_DRAFT = 'draft'
    STATUS_REVIEW = 'review'
    STATUS_SCHEDULED = 'scheduled'
    STATUS_PUBLISHED = 'published'
    STATUS_ARCHIVED = 'archived'

    # Valid statuses for validation
    VALID_STATUSES = [
        STATUS_DRAFT,
        STATUS_REVIEW,
        STATUS_SCHEDULED,
        STATUS_PUBLISHED,
        STATUS_ARCHIVED
    ]

    # Fields copied between variations, snapshots and revisions
    CONTENT_FIELDS = [
        'title',
        'excerpt',
        'meta_title',
        'meta_description',
        'canonical_url',
        'robots_json',
        'jsonld_overrides',
    ]

    def __init__(self, **kwargs) -> None:
        """
        Initialize a Post instance with keyword arguments.

        Args:
            **kwargs: Keyword arguments matching model attributes

        Raises:
            ValueError: If required fields are missing or validation fails
        """
        for required in ('type', 'slug', 'title', 'locale'):
            if not kwargs.get(required):
                raise ValueError(f"Post {required} is required")

        status = kwargs.setdefault('status', self.STATUS_DRAFT)
        if status not in self.VALID_STATUSES:
            raise ValueError(f"Invalid post status. Must be one of: {', '.join(self.VALID_STATUSES)}")

        # Set published_at if status is published
        if status == self.STATUS_PUBLISHED and not kwargs.get('published_at'):
            kwargs['published_at'] = utcnow()

        if status == self.STATUS_SCHEDULED and not kwargs.get('scheduled_at'):
            raise ValueError("Scheduled posts require a scheduled_at datetime")

        kwargs.setdefault('order_index', 0)
        super(Post, self).__init__(**kwargs)

    @property
    def base_id(self) -> int:
        """Id of the original post of this post's translation family."""
        return self.translation_of_id or self.id

    @property
    def is_translation(self) -> bool:
        return self.translation_of_id is not None

    @property
    def has_review_draft(self) -> bool:
        return bool(self.review_draft)

    @property
    def has_ai_review_draft(self) -> bool:
        return bool(self.ai_review_draft)

    def family(self, include_deleted: bool = False) -> List['Post']:
        """
        Return the translation family: the original first, then its translations.

        Args:
            include_deleted: Whether to include soft deleted posts

        Returns:
            List[Post]: Family members ordered original-first, then by locale
        """
        base_id = self.base_id
        query = Post.query.filter(or_(Post.id == base_id, Post.translation_of_id == base_id))
        if not include_deleted:
            query = query.filter(Post.deleted_at.is_(None))
        members = query.all()
        return sorted(members, key=lambda p: (p.id != base_id, p.locale))

    def set_status(self, status: str, when: Optional[datetime] = None) -> None:
        """
        Change status and keep the publication timestamps consistent.

        Args:
            status: New status
            when: Scheduled publication time, required for 'scheduled'

        Raises:
            ValueError: If the status is invalid or a schedule time is missing
        """
        if status not in self.VALID_STATUSES:
            raise ValueError(f"Invalid post status. Must be one of: {', '.join(self.VALID_STATUSES)}")

        if status == self.STATUS_PUBLISHED:
            if self.status != self.STATUS_PUBLISHED or not self.published_at:
                self.published_at = utcnow()
            self.scheduled_at = None
        elif status == self.STATUS_SCHEDULED:
            if when is None and self.scheduled_at is None:
                raise ValueError("Scheduled posts require a scheduled_at datetime")
            if when is not None:
                self.scheduled_at = when if when.tzinfo else when.replace(tzinfo=timezone.utc)

        self.status = status

    @classmethod
    def due_for_publication(cls, now: Optional[datetime] = None) -> List['Post']:
        """
        Scheduled posts whose publication time has passed.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            List[Post]: Posts to publish
        """
        now = now or utcnow()
        return cls.query.filter(
            cls.status == cls.STATUS_SCHEDULED,
            cls.scheduled_at <= now,
            cls.deleted_at.is_(None)
        ).order_by(cls.scheduled_at.asc()).all()

    @classmethod
    def slug_taken(cls, slug: str, locale: str, exclude_id: Optional[int] = None) -> bool:
        """Check slug uniqueness within a locale (soft deleted posts included)."""
        query = cls.query.filter(cls.slug == slug, cls.locale == locale)
        if exclude_id is not None:
            query = query.filter(cls.id != exclude_id)
        return db.session.query(query.exists()).scalar()

    def content_fields(self) -> Dict[str, Any]:
        """Copy of the content fields, used by variations and snapshots."""
        return {field: getattr(self, field) for field in self.CONTENT_FIELDS}

    def to_dict(self, include_drafts: bool = False) -> Dict[str, Any]:
        """
        Convert post to dictionary.

        Args:
            include_drafts: Whether to include the review and AI review draft JSON

        Returns:
            Dict[str, Any]: Dictionary representation of the post
        """
        data = {
            'id': self.id,
            'type': self.type,
            'slug': self.slug,
            'title': self.title,
            'locale': self.locale,
            'status': self.status,
            'excerpt': self.excerpt,
            'meta_title': self.meta_title,
            'meta_description': self.meta_description,
            'canonical_url': self.canonical_url,
            'robots_json': self.robots_json,
            'jsonld_overrides': self.jsonld_overrides,
            'parent_id': self.parent_id,
            'order_index': self.order_index,
            'template_id': self.template_id,
            'user_id': self.user_id,
            'author_id': self.author_id,
            'translation_of_id': self.translation_of_id,
            'ab_group_id': self.ab_group_id,
            'ab_variation': self.ab_variation,
            'has_review_draft': self.has_review_draft,
            'has_ai_review_draft': self.has_ai_review_draft,
            'published_at': self.published_at.isoformat() if self.published_at else None,
            'scheduled_at': self.scheduled_at.isoformat() if self.scheduled_at else None,
            'deleted_at': self.deleted_at.isoformat() if self.deleted_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_drafts:
            data['review_draft'] = self.review_draft
            data['ai_review_draft'] = self.ai_review_draft
        return data

    def __repr__(self) -> str:
        return f'<Post {self.id} {self.type}:{self.locale}/{self.slug} ({self.status})>'
