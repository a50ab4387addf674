"""
Page views of A/B variations.
"""

from extensions import db
from models.base import BaseModel


class PostVariationView(BaseModel):
    """One recorded view of a post belonging to an A/B group."""
    __tablename__ = 'post_variation_views'
    __table_args__ = (
        db.Index('ix_variation_views_group_variation', 'ab_group_id', 'ab_variation'),
    )

    id = db.Column(db.Integer, primary_key=True)
    post_id = db.Column(db.Integer, db.ForeignKey('posts.id', ondelete='CASCADE'), nullable=False)
    ab_group_id = db.Column(db.Integer, nullable=False)
    ab_variation = db.Column(db.String(10), nullable=False)

    def __repr__(self) -> str:
        return f'<PostVariationView post={self.post_id} {self.ab_group_id}/{self.ab_variation}>'
