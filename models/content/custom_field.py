"""
Custom field values attached to posts.
"""

from typing import Any, Dict

from extensions import db
from models.base import BaseModel


class PostCustomFieldValue(BaseModel):
    """One value per (post, field slug); the value is stored as JSON."""
    __tablename__ = 'post_custom_field_values'
    __table_args__ = (
        db.UniqueConstraint('post_id', 'field_slug', name='uq_post_custom_field'),
    )

    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('posts.id', ondelete='CASCADE'), nullable=False, index=True)
    field_slug = db.Column(db.String(150), nullable=False)
    value = db.Column(db.JSON, nullable=True)

    post = db.relationship('Post', back_populates='custom_field_values')

    def to_dict(self) -> Dict[str, Any]:
        return {'slug': self.field_slug, 'value': self.value}

    def __repr__(self) -> str:
        return f'<PostCustomFieldValue post={self.post_id} {self.field_slug}>'
