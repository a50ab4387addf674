"""
Stored submissions of code-first forms.
"""

from typing import Any, Dict

from extensions import db
from models.base import BaseModel


class FormSubmission(BaseModel):
    """A submitted form, attributed to the post (and A/B variation) it came from."""
    __tablename__ = 'form_submissions'

    id = db.Column(db.Integer, primary_key=True)
    form_slug = db.Column(db.String(100), nullable=False, index=True)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    post_id = db.Column(db.Integer, db.ForeignKey('posts.id', ondelete='SET NULL'), nullable=True)
    ab_group_id = db.Column(db.Integer, nullable=True, index=True)
    ab_variation = db.Column(db.String(10), nullable=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'form_slug': self.form_slug,
            'payload': self.payload,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'post_id': self.post_id,
            'ab_group_id': self.ab_group_id,
            'ab_variation': self.ab_variation,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f'<FormSubmission {self.id} {self.form_slug}>'
