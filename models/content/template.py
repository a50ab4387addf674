"""
Template models: reusable module layouts used to seed new posts.
"""

from typing import Any, Dict, Optional

from extensions import db
from models.base import BaseModel


class Template(BaseModel):
    """A named module layout for a post type."""
    __tablename__ = 'templates'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False, unique=True)
    post_type = db.Column(db.String(50), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    locked = db.Column(db.Boolean, nullable=False, default=False)

    modules = db.relationship('TemplateModule', back_populates='template',
                              cascade='all, delete-orphan',
                              order_by='TemplateModule.order_index')

    def to_dict(self, include_modules: bool = True) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'name': self.name,
            'post_type': self.post_type,
            'description': self.description,
            'locked': self.locked,
        }
        if include_modules:
            data['modules'] = [module.to_dict() for module in self.modules]
        return data

    def __repr__(self) -> str:
        return f'<Template {self.name} ({self.post_type})>'


class TemplateModule(BaseModel):
    """A module slot inside a template."""
    __tablename__ = 'template_modules'

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(db.Integer, db.ForeignKey('templates.id', ondelete='CASCADE'), nullable=False)
    type = db.Column(db.String(100), nullable=False)
    scope = db.Column(db.String(20), nullable=False, default='post')
    global_slug = db.Column(db.String(150), nullable=True)
    props = db.Column(db.JSON, nullable=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    locked = db.Column(db.Boolean, nullable=False, default=False)

    template = db.relationship('Template', back_populates='modules')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'scope': self.scope,
            'global_slug': self.global_slug,
            'props': self.props,
            'order_index': self.order_index,
            'locked': self.locked,
        }
