"""
Post type registry.

Post types are defined in code. A definition controls hierarchy, module
support, default URL patterns, attached taxonomies, permalinks, A/B testing
variations, the modules seeded into new posts and whether a user may own
more than one post of the type.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.exceptions import CmsError

logger = logging.getLogger(__name__)


@dataclass
class Variation:
    """One A/B variation of a post type with its traffic weight."""
    value: str
    label: str
    weight: int = 50


@dataclass
class PostTypeConfig:
    """Definition of a post type."""
    type: str
    label: str
    hierarchy_enabled: bool = False
    modules_enabled: bool = True
    permalinks_enabled: bool = True
    url_patterns: List[Dict[str, str]] = field(default_factory=list)
    taxonomies: List[str] = field(default_factory=list)
    ab_testing_enabled: bool = False
    variations: List[Variation] = field(default_factory=list)
    default_modules: List[Dict[str, Any]] = field(default_factory=list)
    one_per_user: bool = False

    def variation_values(self) -> List[str]:
        return [v.value for v in self.variations]

    def pattern_for_locale(self, locale: str) -> Optional[str]:
        for entry in self.url_patterns:
            if entry.get('locale') == locale:
                return entry.get('pattern')
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type,
            'label': self.label,
            'hierarchy_enabled': self.hierarchy_enabled,
            'modules_enabled': self.modules_enabled,
            'permalinks_enabled': self.permalinks_enabled,
            'url_patterns': list(self.url_patterns),
            'taxonomies': list(self.taxonomies),
            'ab_testing': {
                'enabled': self.ab_testing_enabled,
                'variations': [
                    {'value': v.value, 'label': v.label, 'weight': v.weight} for v in self.variations
                ],
            },
            'default_modules': list(self.default_modules),
            'one_per_user': self.one_per_user,
        }


class PostTypeRegistry:
    """Registry of post type definitions."""

    def __init__(self) -> None:
        self._types: Dict[str, PostTypeConfig] = {}

    def register(self, config: PostTypeConfig) -> None:
        if config.type in self._types:
            raise ValueError(f"Post type '{config.type}' is already registered")
        self._types[config.type] = config

    def get(self, post_type: str) -> Optional[PostTypeConfig]:
        return self._types.get(post_type)

    def require(self, post_type: str) -> PostTypeConfig:
        """
        Get a post type definition or fail.

        Raises:
            CmsError: 400 when the type is not registered
        """
        config = self._types.get(post_type)
        if config is None:
            raise CmsError(f"Unknown post type: {post_type}", status_code=400,
                           meta={'allowed': self.types()})
        return config

    def has(self, post_type: str) -> bool:
        return post_type in self._types

    def types(self) -> List[str]:
        return list(self._types.keys())

    def configs(self) -> List[PostTypeConfig]:
        return list(self._types.values())


_DEFAULT_VARIATIONS = [Variation('A', 'Variation A', 50), Variation('B', 'Variation B', 50)]


BUILTIN_POST_TYPES = [
    PostTypeConfig(
        type='blog',
        label='Blog',
        url_patterns=[{'locale': 'en', 'pattern': '/blog/{slug}'}],
        taxonomies=['tags'],
        ab_testing_enabled=True,
        variations=list(_DEFAULT_VARIATIONS),
        default_modules=[{'type': 'prose', 'scope': 'post'}],
    ),
    PostTypeConfig(
        type='page',
        label='Page',
        hierarchy_enabled=True,
        ab_testing_enabled=True,
        variations=list(_DEFAULT_VARIATIONS),
        default_modules=[{'type': 'hero', 'scope': 'post'}, {'type': 'prose', 'scope': 'post'}],
    ),
    PostTypeConfig(
        type='documentation',
        label='Documentation',
        hierarchy_enabled=True,
        taxonomies=['categories'],
        default_modules=[{'type': 'prose', 'scope': 'post'}],
    ),
    PostTypeConfig(
        type='profile',
        label='Profile',
        modules_enabled=False,
        one_per_user=True,
    ),
]


def _build_default_registry() -> PostTypeRegistry:
    registry = PostTypeRegistry()
    for config in BUILTIN_POST_TYPES:
        registry.register(config)
    return registry


post_type_registry = _build_default_registry()
