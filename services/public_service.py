"""
Public page resolution.

Turns a site path into the published post that should be shown, applying
redirects first, then URL patterns, then A/B variation selection.
"""

import logging
from typing import Any, Dict, List, Optional

from flask import current_app

from extensions import cache
from models.content.module import PostModule
from models.content.post import Post
from core.exceptions import NotFoundError
from core.utils.string import sanitize_html
from services import content_versioning as cv
from services.custom_field_service import CustomFieldService
from services.module_registry import module_registry
from services.url_pattern_service import UrlPatternService
from services.variation_service import VariationService

logger = logging.getLogger(__name__)


def normalize_path(path: Optional[str]) -> str:
    path = (path or '/').strip()
    if not path.startswith('/'):
        path = '/' + path
    if len(path) > 1:
        path = path.rstrip('/')
    return path


@cache.memoize(timeout=300)
def cached_match(path: str) -> Optional[Dict[str, Any]]:
    """URL pattern match for a path, cached until the patterns change."""
    return UrlPatternService.match_path(path)


def render_module(post_module: PostModule) -> Dict[str, Any]:
    """Live props of a placed module with rich text fields sanitized."""
    instance = post_module.module_instance
    props = cv.effective_props(post_module, cv.MODE_PUBLISH)
    if module_registry.has(instance.type):
        for field in module_registry.get(instance.type).field_schema:
            if field.type == 'richtext' and isinstance(props.get(field.slug), str):
                props[field.slug] = sanitize_html(props[field.slug])
    return {
        'id': post_module.id,
        'type': instance.type,
        'scope': 'global' if instance.is_global else 'local',
        'global_slug': instance.global_slug,
        'order_index': post_module.order_index,
        'props': props,
    }


class PublicService:
    """Read-only access to published content."""

    @staticmethod
    def clear_cache() -> None:
        cache.delete_memoized(cached_match)

    @staticmethod
    def render_post(post: Post) -> Dict[str, Any]:
        """Public representation of a published post."""
        modules = [
            render_module(pm)
            for pm in cv.visible_modules(list(post.post_modules), cv.MODE_PUBLISH)
        ]
        translations = [
            {'locale': member.locale, 'path': UrlPatternService.build_post_path(member)}
            for member in post.family()
            if member.status == Post.STATUS_PUBLISHED
        ]
        return {
            'id': post.id,
            'type': post.type,
            'locale': post.locale,
            'slug': post.slug,
            'title': post.title,
            'excerpt': post.excerpt,
            'meta_title': post.meta_title or post.title,
            'meta_description': post.meta_description,
            'canonical_url': post.canonical_url,
            'robots': post.robots_json or {'index': True, 'follow': True},
            'jsonld_overrides': post.jsonld_overrides,
            'published_at': post.published_at.isoformat() if post.published_at else None,
            'ab_group_id': post.ab_group_id,
            'ab_variation': post.ab_variation,
            'custom_fields': CustomFieldService.get_values(post),
            'terms': [term.to_dict() for term in post.terms],
            'modules': modules,
            'translations': translations,
        }

    @staticmethod
    def _variation_candidates(post: Post) -> List[Post]:
        return Post.active().filter(
            Post.ab_group_id == post.ab_group_id,
            Post.locale == post.locale,
            Post.status == Post.STATUS_PUBLISHED,
        ).order_by(Post.id.asc()).all()

    @staticmethod
    def resolve(path: str, track: bool = True) -> Dict[str, Any]:
        """
        Resolve a public path.

        Args:
            path: Site path such as ``/es/blog/hola``
            track: Whether to record a view for A/B grouped posts

        Returns:
            Dict[str, Any]: ``{"kind": "redirect", "location", "status"}`` or
            ``{"kind": "post", "path", "post"}``

        Raises:
            NotFoundError: If nothing published lives at ``path``
        """
        path = normalize_path(path)

        redirect = UrlPatternService.find_redirect(path)
        if redirect is not None:
            return {'kind': 'redirect', 'location': redirect.to_path, 'status': redirect.http_status}

        match = cached_match(path)
        if match is None:
            raise NotFoundError("Page not found", meta={'path': path})

        post = Post.active().filter_by(
            type=match['post_type'], locale=match['locale'], slug=match['slug'],
            status=Post.STATUS_PUBLISHED
        ).first()
        if post is None:
            raise NotFoundError("Page not found", meta={'path': path})
        if match.get('uses_path') and UrlPatternService.build_post_path(post) != path:
            raise NotFoundError("Page not found", meta={'path': path})

        if post.ab_group_id:
            chosen = VariationService.choose_variation(
                PublicService._variation_candidates(post), post.type
            )
            post = chosen or post
            if track:
                VariationService.record_view(post)

        current_app.logger.debug("Resolved %s to post %s", path, post.id)
        return {'kind': 'post', 'path': path, 'post': PublicService.render_post(post)}

    @staticmethod
    def get_published(post_id: int) -> Post:
        post = Post.active().filter_by(id=post_id, status=Post.STATUS_PUBLISHED).first()
        if post is None:
            raise NotFoundError("Post not found")
        return post
