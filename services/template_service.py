"""
Template Service for the CMS.

Templates are named module layouts for a post type. New posts created with a
template get one module per template slot.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.content.post import Post
from models.content.template import Template, TemplateModule
from core.exceptions import CmsError, ConflictError
from services.module_registry import module_registry
from services.post_types import post_type_registry

logger = logging.getLogger(__name__)


def _build_modules(post_type: str, modules: Optional[List[Dict[str, Any]]]) -> List[TemplateModule]:
    """
    Validate template slots and build their rows.

    Raises:
        NotFoundError: Unknown module type
        CmsError: 400 for disallowed scopes or global slots without a slug
    """
    rows = []
    for position, entry in enumerate(modules or []):
        config = module_registry.get(entry.get('type'))
        scope = entry.get('scope') or 'post'
        if scope == 'local':
            scope = 'post'
        if scope not in config.allowed_scopes:
            raise CmsError(f"Module '{config.type}' cannot be placed with scope '{scope}'", status_code=400)
        if scope == 'global' and not entry.get('global_slug'):
            raise CmsError("Global template modules require a global_slug", status_code=400)
        if not config.allows_post_type(post_type):
            raise CmsError(f"Module '{config.type}' is not allowed on {post_type} posts", status_code=400)
        rows.append(TemplateModule(
            type=config.type,
            scope=scope,
            global_slug=entry.get('global_slug') if scope == 'global' else None,
            props=entry.get('props'),
            order_index=entry.get('order_index', position),
            locked=bool(entry.get('locked', False)),
        ))
    return rows


class TemplateService:
    """CRUD for templates and their module slots."""

    @staticmethod
    def list_templates(post_type: Optional[str] = None) -> List[Template]:
        query = Template.query
        if post_type:
            query = query.filter_by(post_type=post_type)
        return query.order_by(Template.name.asc()).all()

    @staticmethod
    def get_template(template_id: int) -> Template:
        return Template.get_or_404(template_id, "Template not found")

    @staticmethod
    def create_template(name: str, post_type: str, description: Optional[str] = None,
                        locked: bool = False, modules: Optional[List[Dict[str, Any]]] = None) -> Template:
        """
        Create a template.

        Args:
            name: Unique template name
            post_type: Registered post type
            description: Optional description
            locked: Whether seeded modules are locked by default
            modules: Slots with ``type``, ``scope``, ``global_slug``, ``props``, ``locked``

        Raises:
            CmsError: 400 for unknown post types or invalid slots
            ConflictError: If the name is taken
        """
        post_type_registry.require(post_type)
        if Template.query.filter_by(name=name).first() is not None:
            raise ConflictError(f"Template '{name}' already exists")
        rows = _build_modules(post_type, modules)
        if locked:
            for row in rows:
                row.locked = True
        try:
            template = Template(name=name, post_type=post_type, description=description, locked=locked)
            template.modules = rows
            db.session.add(template)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to create template %s: %s", name, e)
            raise
        logger.info("Created template %s for %s posts", name, post_type)
        return template

    @staticmethod
    def update_template(template_id: int, name: Optional[str] = None, description: Optional[str] = None,
                        locked: Optional[bool] = None,
                        modules: Optional[List[Dict[str, Any]]] = None) -> Template:
        """Update a template; a ``modules`` list replaces every slot."""
        template = TemplateService.get_template(template_id)
        if name and name != template.name:
            if Template.query.filter(Template.name == name, Template.id != template.id).first() is not None:
                raise ConflictError(f"Template '{name}' already exists")
            template.name = name
        try:
            if description is not None:
                template.description = description
            if locked is not None:
                template.locked = locked
            if modules is not None:
                template.modules = _build_modules(template.post_type, modules)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to update template %s: %s", template_id, e)
            raise
        return template

    @staticmethod
    def delete_template(template_id: int) -> None:
        """
        Raises:
            ConflictError: While live posts still reference the template
        """
        template = TemplateService.get_template(template_id)
        in_use = Post.active().filter_by(template_id=template.id).count()
        if in_use:
            raise ConflictError("Template is used by existing posts", meta={'post_count': in_use})
        template.delete()
