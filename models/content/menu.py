"""
Menu models for content navigation structure.

This module defines the Menu and MenuItem models which provide structured
navigation for a site. Items either point at a post (its URL is resolved from
the URL patterns when the tree is built) or carry a custom URL, and nest at
most two levels deep.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import validates

from extensions import db
from models.base import BaseModel


class Menu(BaseModel):
    """
    Menu model for site navigation.

    Represents a named navigation menu that can contain multiple menu items
    in a two level structure.
    """
    __tablename__ = 'menus'

    # Core fields
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(100), nullable=False, unique=True)
    locale = db.Column(db.String(10), nullable=True)

    # Relationships
    items = db.relationship('MenuItem', back_populates='menu',
                            cascade='all, delete-orphan',
                            order_by='MenuItem.order_index')

    def __init__(self, name: str, slug: str, locale: Optional[str] = None):
        self.name = name
        self.slug = slug
        self.locale = locale

    def root_items(self, locale: Optional[str] = None) -> List['MenuItem']:
        """Top level items, optionally limited to one locale (items without a locale always match)."""
        return [
            item for item in self.items
            if item.parent_id is None and (locale is None or item.locale in (None, locale))
        ]

    def to_dict(self, include_items: bool = False) -> Dict[str, Any]:
        """Convert menu to dictionary representation."""
        result = {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'locale': self.locale,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }

        if include_items:
            result['items'] = [item.to_dict(include_children=True) for item in self.root_items()]

        return result

    @classmethod
    def get_by_slug(cls, slug: str) -> Optional['Menu']:
        """Get menu by slug."""
        return cls.query.filter_by(slug=slug).first()

    def __repr__(self) -> str:
        return f"<Menu {self.id}: {self.name}>"


class MenuItem(BaseModel):
    """
    MenuItem model for navigation items.

    Represents an individual entry of a navigation menu. ``type`` is either
    ``post`` (linked to a post) or ``custom`` (free URL); ``kind`` separates
    regular links from section headings.
    """
    __tablename__ = 'menu_items'

    TYPE_POST = 'post'
    TYPE_CUSTOM = 'custom'
    VALID_TYPES = [TYPE_POST, TYPE_CUSTOM]

    KIND_ITEM = 'item'
    KIND_SECTION = 'section'
    VALID_KINDS = [KIND_ITEM, KIND_SECTION]

    # Core fields
    id = db.Column(db.Integer, primary_key=True)
    menu_id = db.Column(db.Integer, db.ForeignKey('menus.id', ondelete='CASCADE'), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey('menu_items.id', ondelete='CASCADE'), nullable=True)
    locale = db.Column(db.String(10), nullable=True)
    type = db.Column(db.String(20), nullable=False, default=TYPE_CUSTOM)
    post_id = db.Column(db.Integer, db.ForeignKey('posts.id', ondelete='CASCADE'), nullable=True)
    custom_url = db.Column(db.String(512), nullable=True)
    label = db.Column(db.String(150), nullable=False)

    # Link attributes
    anchor = db.Column(db.String(100), nullable=True)
    target = db.Column(db.String(20), nullable=True)
    rel = db.Column(db.String(100), nullable=True)
    kind = db.Column(db.String(20), nullable=False, default=KIND_ITEM)
    order_index = db.Column(db.Integer, nullable=False, default=0)

    # Relationships
    menu = db.relationship('Menu', back_populates='items')
    post = db.relationship('Post')
    children = db.relationship('MenuItem', backref=db.backref('parent', remote_side=[id]),
                               cascade='all, delete-orphan',
                               order_by='MenuItem.order_index')

    def __init__(self, menu_id: int, label: str, type: str = TYPE_CUSTOM,
                 post_id: Optional[int] = None, custom_url: Optional[str] = None,
                 parent_id: Optional[int] = None, locale: Optional[str] = None,
                 anchor: Optional[str] = None, target: Optional[str] = None,
                 rel: Optional[str] = None, kind: str = KIND_ITEM, order_index: int = 0):
        if type not in self.VALID_TYPES:
            raise ValueError(f"Invalid menu item type: {type}")
        if kind not in self.VALID_KINDS:
            raise ValueError(f"Invalid menu item kind: {kind}")
        self.menu_id = menu_id
        self.label = label
        self.type = type
        self.post_id = post_id
        self.custom_url = custom_url
        self.locale = locale
        self.anchor = anchor
        self.target = target
        self.rel = rel
        self.kind = kind
        self.order_index = order_index
        self.parent_id = parent_id

    @validates('parent_id')
    def validate_parent_id(self, key: str, parent_id: Optional[int]) -> Optional[int]:
        """Validate parent_id to prevent circular references and deep nesting."""
        if parent_id is not None:
            if parent_id == getattr(self, 'id', None):
                raise ValueError("MenuItem cannot be its own parent")

            # Only allow 2 levels
            parent = db.session.get(MenuItem, parent_id)
            if parent is None:
                raise ValueError(f"Parent menu item {parent_id} not found")
            if parent.parent_id is not None:
                raise ValueError("Menu items can only be nested 2 levels deep")
            if self.menu_id is not None and parent.menu_id != self.menu_id:
                raise ValueError("Parent menu item belongs to another menu")
            if getattr(self, 'id', None) is not None and self.children:
                raise ValueError("Menu items can only be nested 2 levels deep")

        return parent_id

    def to_dict(self, include_children: bool = True) -> Dict[str, Any]:
        """Convert menu item to dictionary representation."""
        result = {
            'id': self.id,
            'menu_id': self.menu_id,
            'parent_id': self.parent_id,
            'locale': self.locale,
            'type': self.type,
            'post_id': self.post_id,
            'custom_url': self.custom_url,
            'label': self.label,
            'anchor': self.anchor,
            'target': self.target,
            'rel': self.rel,
            'kind': self.kind,
            'order_index': self.order_index,
        }

        if include_children:
            result['children'] = [child.to_dict(include_children=False) for child in self.children]

        return result

    def __repr__(self) -> str:
        return f"<MenuItem {self.id}: {self.label}>"
