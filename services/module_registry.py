"""
Module registry for the CMS.

Module types are defined in code. Each definition declares its editable
fields, the scopes it may be placed in (``post`` for a single post, ``global``
for shared instances), whether it can be locked, its default props and the
post types allowed to use it.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.exceptions import CmsError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class FieldDefinition:
    """One editable prop of a module."""
    slug: str
    type: str = 'text'
    required: bool = False
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'slug': self.slug,
            'type': self.type,
            'required': self.required,
            'label': self.label or self.slug.replace('_', ' ').title(),
        }


@dataclass
class ModuleConfig:
    """Definition of a module type."""
    type: str
    name: str
    description: str = ''
    allowed_scopes: List[str] = field(default_factory=lambda: ['post', 'global'])
    lockable: bool = True
    field_schema: List[FieldDefinition] = field(default_factory=list)
    default_props: Dict[str, Any] = field(default_factory=dict)
    allowed_post_types: List[str] = field(default_factory=list)

    def allows_post_type(self, post_type: str) -> bool:
        return not self.allowed_post_types or post_type in self.allowed_post_types

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'name': self.name,
            'description': self.description,
            'allowed_scopes': list(self.allowed_scopes),
            'lockable': self.lockable,
            'field_schema': [f.to_dict() for f in self.field_schema],
            'default_props': copy.deepcopy(self.default_props),
            'allowed_post_types': list(self.allowed_post_types),
        }


class ModuleRegistry:
    """
    Central registry for all available module types.

    Provides methods to register, retrieve, and list module definitions.
    """

    def __init__(self) -> None:
        self._modules: Dict[str, ModuleConfig] = {}

    def register(self, config: ModuleConfig) -> None:
        """
        Register a module type.

        Raises:
            ValueError: If the type is already registered
        """
        if config.type in self._modules:
            raise ValueError(f"Module type '{config.type}' is already registered")
        self._modules[config.type] = config
        logger.debug("Registered module type '%s'", config.type)

    def get(self, module_type: str) -> ModuleConfig:
        """
        Get a module definition by type.

        Raises:
            NotFoundError: If the type is not registered
        """
        config = self._modules.get(module_type)
        if config is None:
            raise NotFoundError(f"Module type '{module_type}' is not registered")
        return config

    def has(self, module_type: str) -> bool:
        return module_type in self._modules

    def types(self) -> List[str]:
        return list(self._modules.keys())

    def configs(self) -> List[ModuleConfig]:
        return list(self._modules.values())

    def for_post_type(self, post_type: str) -> List[ModuleConfig]:
        """Module definitions usable on posts of ``post_type``."""
        return [config for config in self._modules.values() if config.allows_post_type(post_type)]

    def schema(self, module_type: str) -> Dict[str, Any]:
        return self.get(module_type).to_dict()

    def validate_props(self, module_type: str, props: Optional[Dict[str, Any]]) -> None:
        """
        Check that every required field of a module has a value.

        Args:
            module_type: Registered module type
            props: Props to validate

        Raises:
            CmsError: 400 listing the missing fields
        """
        config = self.get(module_type)
        props = props or {}
        missing = [
            f.slug for f in config.field_schema
            if f.required and props.get(f.slug) in (None, '', [], {})
        ]
        if missing:
            raise CmsError(
                f"Missing required props for module '{module_type}'",
                status_code=400,
                meta={'missing': missing}
            )

    def clear(self) -> None:
        self._modules.clear()

    def count(self) -> int:
        return len(self._modules)


BUILTIN_MODULES = [
    ModuleConfig(
        type='prose',
        name='Prose',
        description='Rich text content block',
        field_schema=[FieldDefinition('content', 'richtext', required=True)],
        default_props={'content': ''},
    ),
    ModuleConfig(
        type='hero',
        name='Hero',
        description='Page header with title, subtitle and call to action',
        field_schema=[
            FieldDefinition('title', 'text', required=True),
            FieldDefinition('subtitle', 'text'),
            FieldDefinition('image', 'media'),
            FieldDefinition('cta', 'link'),
        ],
        default_props={'title': 'Welcome', 'subtitle': '', 'cta': {'label': '', 'url': ''}},
    ),
    ModuleConfig(
        type='callout',
        name='Callout',
        description='Highlighted notice',
        field_schema=[
            FieldDefinition('variant', 'select'),
            FieldDefinition('content', 'richtext', required=True),
        ],
        default_props={'variant': 'info', 'content': ''},
    ),
    ModuleConfig(
        type='gallery',
        name='Gallery',
        description='Grid of images',
        field_schema=[FieldDefinition('images', 'repeater'), FieldDefinition('columns', 'number')],
        default_props={'images': [], 'columns': 3},
    ),
    ModuleConfig(
        type='faq',
        name='FAQ',
        description='Questions and answers',
        field_schema=[FieldDefinition('title', 'text'), FieldDefinition('items', 'repeater')],
        default_props={'title': 'Frequently asked questions', 'items': []},
    ),
    ModuleConfig(
        type='form',
        name='Form',
        description='Embeds a code-first form',
        allowed_scopes=['post'],
        field_schema=[FieldDefinition('form_slug', 'select', required=True), FieldDefinition('title', 'text')],
        default_props={'form_slug': 'contact', 'title': ''},
    ),
]


def _build_default_registry() -> ModuleRegistry:
    registry = ModuleRegistry()
    for config in BUILTIN_MODULES:
        registry.register(config)
    return registry


module_registry = _build_default_registry()
