"""
PostRevision model for tracking post version history.

Each revision stores a canonical snapshot of a post (fields, custom fields and
modules) for one layer: the approved (live) content, the review draft or the
AI review draft. Revisions are numbered per post and pruned to the configured
limit by the revision service.
"""

from typing import Any, Dict, List, Optional

from extensions import db
from models.base import BaseModel


class PostRevision(BaseModel):
    """
    Historical snapshot of a post.

    Stores versions of post content for audit trail, comparison and revert.
    """
    __tablename__ = 'post_revisions'

    MODE_APPROVED = 'approved'
    MODE_REVIEW = 'review'
    MODE_AI_REVIEW = 'ai-review'
    VALID_MODES = [MODE_APPROVED, MODE_REVIEW, MODE_AI_REVIEW]

    # Core fields
    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('posts.id', ondelete='CASCADE'), nullable=False)
    revision_number = db.Column(db.Integer, nullable=False)
    mode = db.Column(db.String(20), nullable=False, default=MODE_APPROVED)
    snapshot = db.Column(db.JSON, nullable=False)
    change_summary = db.Column(db.String(255), nullable=True)

    # Who made the revision
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    # Relationships
    post = db.relationship('Post', back_populates='revisions')
    user = db.relationship('User')

    # Indexes for efficient lookups
    __table_args__ = (
        db.Index('idx_post_revision_lookup', 'post_id', 'revision_number'),
    )

    def __init__(self, post_id: int, snapshot: Dict[str, Any], mode: str = MODE_APPROVED,
                 user_id: Optional[int] = None, change_summary: Optional[str] = None):
        if mode not in self.VALID_MODES:
            raise ValueError(f"Invalid revision mode: {mode}")
        self.post_id = post_id
        self.snapshot = snapshot
        self.mode = mode
        self.user_id = user_id
        self.change_summary = change_summary

        # Set the revision number based on existing revisions
        previous_revision = PostRevision.query.filter_by(
            post_id=post_id
        ).order_by(PostRevision.revision_number.desc()).first()

        if previous_revision:
            self.revision_number = previous_revision.revision_number + 1
        else:
            self.revision_number = 1

    def to_dict(self, include_snapshot: bool = False) -> Dict[str, Any]:
        """Convert revision to dictionary representation."""
        data = {
            'id': self.id,
            'post_id': self.post_id,
            'revision_number': self.revision_number,
            'mode': self.mode,
            'change_summary': self.change_summary,
            'user_id': self.user_id,
            'user_email': self.user.email if self.user else None,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
        if include_snapshot:
            data['snapshot'] = self.snapshot
        return data

    @classmethod
    def for_post(cls, post_id: int, limit: Optional[int] = None) -> List['PostRevision']:
        """Get revisions for a post, newest first."""
        query = cls.query.filter_by(post_id=post_id).order_by(cls.revision_number.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def __repr__(self) -> str:
        return f"<PostRevision post={self.post_id} #{self.revision_number} ({self.mode})>"
