"""
Taxonomy models for classifying posts.

A Taxonomy (for example "categories" or "tags") declares which post types it
applies to and whether its terms nest. TaxonomyTerm rows hold the terms, and
the ``post_taxonomy_terms`` association table links posts to terms.
"""

from typing import Any, Dict, List, Optional, Set

from sqlalchemy.orm import validates

from extensions import db
from models.base import BaseModel
from core.utils.string import slugify


post_taxonomy_terms = db.Table(
    'post_taxonomy_terms',
    db.Column('post_id', db.Integer, db.ForeignKey('posts.id', ondelete='CASCADE'), primary_key=True),
    db.Column('term_id', db.Integer, db.ForeignKey('taxonomy_terms.id', ondelete='CASCADE'), primary_key=True),
)


class Taxonomy(BaseModel):
    """
    A named classification scheme.

    Attributes:
        slug: Unique identifier used by post type configuration
        name: Display name
        hierarchical: Whether terms may have parents
        post_types: Post types allowed to use this taxonomy (empty means all)
    """
    __tablename__ = 'taxonomies'

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(100), nullable=False, unique=True, index=True)
    name = db.Column(db.String(150), nullable=False)
    hierarchical = db.Column(db.Boolean, nullable=False, default=False)
    post_types = db.Column(db.JSON, nullable=False, default=list)

    terms = db.relationship('TaxonomyTerm', back_populates='taxonomy',
                            cascade='all, delete-orphan',
                            order_by='TaxonomyTerm.order_index')

    def __init__(self, name: str, slug: Optional[str] = None, hierarchical: bool = False,
                 post_types: Optional[List[str]] = None):
        self.name = name
        self.slug = slug or slugify(name)
        self.hierarchical = hierarchical
        self.post_types = list(post_types or [])

    def allows_post_type(self, post_type: str) -> bool:
        return not self.post_types or post_type in self.post_types

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'slug': self.slug,
            'name': self.name,
            'hierarchical': self.hierarchical,
            'post_types': self.post_types or [],
        }

    def __repr__(self) -> str:
        return f'<Taxonomy {self.slug}>'


class TaxonomyTerm(BaseModel):
    """A term inside a taxonomy, optionally nested under another term."""
    __tablename__ = 'taxonomy_terms'
    __table_args__ = (
        db.UniqueConstraint('taxonomy_id', 'slug', name='uq_taxonomy_terms_slug'),
    )

    id = db.Column(db.Integer, primary_key=True)
    taxonomy_id = db.Column(db.Integer, db.ForeignKey('taxonomies.id', ondelete='CASCADE'), nullable=False)
    slug = db.Column(db.String(150), nullable=False)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    parent_id = db.Column(db.Integer, db.ForeignKey('taxonomy_terms.id', ondelete='CASCADE'), nullable=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    taxonomy = db.relationship('Taxonomy', back_populates='terms')
    parent = db.relationship('TaxonomyTerm', remote_side=[id], backref='children')

    def __init__(self, taxonomy_id: int, name: str, slug: Optional[str] = None,
                 parent_id: Optional[int] = None, description: Optional[str] = None,
                 order_index: int = 0):
        self.taxonomy_id = taxonomy_id
        self.name = name
        self.slug = slug or slugify(name)
        self.description = description
        self.order_index = order_index
        self.parent_id = parent_id

    @validates('parent_id')
    def validate_parent_id(self, key: str, parent_id: Optional[int]) -> Optional[int]:
        """
        Validate that parent_id doesn't create circular references.

        Args:
            key: Field name ('parent_id')
            parent_id: Parent term ID

        Returns:
            Optional[int]: Validated parent ID

        Raises:
            ValueError: If parent ID would create a circular reference
        """
        if parent_id is None:
            return parent_id

        if parent_id == getattr(self, 'id', None):
            raise ValueError("Term cannot be its own parent")

        parent = db.session.get(TaxonomyTerm, parent_id)
        if parent is None:
            raise ValueError(f"Parent term {parent_id} not found")
        if self.taxonomy_id is not None and parent.taxonomy_id != self.taxonomy_id:
            raise ValueError("Parent term belongs to another taxonomy")

        if getattr(self, 'id', None) is not None:
            seen: Set[int] = set()
            current = parent
            while current is not None:
                if current.id == self.id or current.id in seen:
                    raise ValueError("Circular reference detected in term hierarchy")
                seen.add(current.id)
                current = current.parent

        return parent_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'taxonomy_id': self.taxonomy_id,
            'slug': self.slug,
            'name': self.name,
            'description': self.description,
            'parent_id': self.parent_id,
            'order_index': self.order_index,
        }

    def __repr__(self) -> str:
        return f'<TaxonomyTerm {self.slug}>'
