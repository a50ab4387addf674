"""
Canonical JSON serialization of posts.

The canonical format (``version: 1``) carries the post fields, custom
fields, taxonomy term ids, the module layout and the translation family. It
is used for exports and imports, revision snapshots, draft snapshots and the
payload sent to agents.
"""

import copy
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.content.module import PostModule
from models.content.post import Post
from core.exceptions import CmsError
from services import content_versioning as cv

logger = logging.getLogger(__name__)

CANONICAL_VERSION = 1

# Post columns written by imports and draft promotion
POST_FIELDS = ['type', 'locale', 'slug', 'title', 'status'] + Post.CONTENT_FIELDS


def _custom_fields_for(post: Post, mode: str) -> List[Dict[str, Any]]:
    values = {cf.field_slug: cf.value for cf in post.custom_field_values}
    if mode != cv.MODE_PUBLISH:
        layers = [cv.MODE_REVIEW] if mode == cv.MODE_REVIEW else [cv.MODE_REVIEW, cv.MODE_AI_REVIEW]
        for layer in layers:
            draft = getattr(post, cv.draft_column(layer)) or {}
            for entry in draft.get('custom_fields') or []:
                if isinstance(entry, dict) and entry.get('slug'):
                    values[entry['slug']] = entry.get('value')
    return [{'slug': slug, 'value': value} for slug, value in sorted(values.items())]


def _term_ids_for(post: Post, mode: str) -> List[int]:
    term_ids = sorted(term.id for term in post.terms)
    if mode != cv.MODE_PUBLISH:
        layers = [cv.MODE_REVIEW] if mode == cv.MODE_REVIEW else [cv.MODE_REVIEW, cv.MODE_AI_REVIEW]
        for layer in layers:
            draft = getattr(post, cv.draft_column(layer)) or {}
            if isinstance(draft.get('taxonomy_term_ids'), list):
                term_ids = sorted(int(t) for t in draft['taxonomy_term_ids'])
    return term_ids


def serialize_module(post_module: PostModule, mode: str) -> Dict[str, Any]:
    """Canonical representation of one placed module as seen from ``mode``."""
    instance = post_module.module_instance
    return {
        'post_module_id': post_module.id,
        'module_instance_id': instance.id,
        'type': instance.type,
        'scope': 'global' if instance.is_global else 'local',
        'order_index': post_module.order_index,
        'locked': bool(post_module.locked),
        'admin_label': post_module.admin_label,
        'props': cv.read_props(instance, mode),
        'overrides': cv.read_overrides(post_module, mode),
        'global_slug': instance.global_slug,
    }


class SerializerService:
    """Serialize posts to canonical JSON and import them back."""

    @staticmethod
    def serialize(post: Post, mode: str = cv.MODE_PUBLISH) -> Dict[str, Any]:
        """
        Serialize a post and its modules.

        Args:
            post: Post to serialize
            mode: Layer to read (publish, review or ai-review)

        Returns:
            Dict[str, Any]: Canonical post JSON
        """
        mode = cv.normalize_mode(mode)
        fields = cv.read_post_fields(post, mode, POST_FIELDS)
        fields['custom_fields'] = _custom_fields_for(post, mode)
        fields['taxonomy_term_ids'] = _term_ids_for(post, mode)

        modules = [
            serialize_module(pm, mode)
            for pm in cv.visible_modules(list(post.post_modules), mode)
        ]

        return {
            'version': CANONICAL_VERSION,
            'exported_at': datetime.now(timezone.utc).isoformat(),
            'mode': mode,
            'post': fields,
            'modules': modules,
            'translations': [
                {'id': member.id, 'locale': member.locale, 'slug': member.slug}
                for member in post.family()
            ],
        }

    @staticmethod
    def draft_snapshot(post: Post, mode: str, saved_by: Optional[str] = None) -> Dict[str, Any]:
        """
        Flat snapshot stored in a post's draft column.

        Post fields sit at the top level next to ``custom_fields``,
        ``modules``, ``savedAt`` and ``savedBy``.
        """
        canonical = SerializerService.serialize(post, mode)
        snapshot = dict(canonical['post'])
        snapshot['modules'] = canonical['modules']
        snapshot['savedAt'] = datetime.now(timezone.utc).isoformat()
        snapshot['savedBy'] = saved_by or 'system'
        return snapshot

    @staticmethod
    def _check_version(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if not isinstance(data, dict) or data.get('version') != CANONICAL_VERSION:
            raise CmsError("Unsupported or missing canonical version", status_code=400,
                           meta={'supported': [CANONICAL_VERSION]})
        if not isinstance(data.get('post'), dict):
            raise CmsError("Canonical JSON requires a post object", status_code=400)
        return data

    @staticmethod
    def _add_modules(post: Post, modules: List[Dict[str, Any]]) -> None:
        from services.post_module_service import PostModuleService

        for position, entry in enumerate(sorted(modules or [], key=lambda m: m.get('order_index', 0))):
            scope = 'global' if entry.get('scope') == 'global' else 'post'
            post_module = PostModuleService.add_module_to_post(
                post.id,
                entry.get('type'),
                scope=scope,
                props=entry.get('props') or {},
                global_slug=entry.get('global_slug'),
                order_index=entry.get('order_index', position),
                locked=bool(entry.get('locked')),
                admin_label=entry.get('admin_label'),
                commit=False,
            )
            if scope == 'global' and entry.get('overrides'):
                post_module.overrides = copy.deepcopy(entry['overrides'])

    @staticmethod
    def import_create(data: Dict[str, Any], user: Any) -> Post:
        """
        Create a new post from canonical JSON.

        Raises:
            CmsError: 400 for unsupported versions, plus any creation error
        """
        from services.post_service import PostService
        from services.custom_field_service import CustomFieldService

        data = SerializerService._check_version(data)
        fields = data['post']
        post = PostService.create_post(
            user,
            type=fields.get('type'),
            locale=fields.get('locale'),
            slug=fields.get('slug'),
            title=fields.get('title'),
            status=fields.get('status') or Post.STATUS_DRAFT,
            excerpt=fields.get('excerpt'),
            meta_title=fields.get('meta_title'),
            meta_description=fields.get('meta_description'),
            seed_modules=False,
        )
        try:
            post.robots_json = fields.get('robots_json')
            post.jsonld_overrides = fields.get('jsonld_overrides')
            SerializerService._add_modules(post, data.get('modules') or [])
            CustomFieldService.upsert_custom_fields(post, fields.get('custom_fields') or [], commit=False)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to import post %s: %s", post.id, e)
            raise
        logger.info("Imported post %s from canonical JSON", post.id)
        return post

    @staticmethod
    def import_replace(post: Post, data: Dict[str, Any], user: Any = None) -> Post:
        """
        Replace a post's live fields, modules and custom fields from canonical JSON.
        """
        from services.post_service import PostService
        from services.custom_field_service import CustomFieldService

        data = SerializerService._check_version(data)
        fields = data['post']
        changes = {k: fields[k] for k in ['slug', 'title', 'status'] + Post.CONTENT_FIELDS if k in fields}
        PostService.update_post(post, user, commit=False, **changes)

        try:
            for post_module in list(post.post_modules):
                instance = post_module.module_instance
                post.post_modules.remove(post_module)
                db.session.delete(post_module)
                if instance is not None and not instance.is_global:
                    db.session.delete(instance)
            db.session.flush()

            SerializerService._add_modules(post, data.get('modules') or [])
            CustomFieldService.upsert_custom_fields(post, fields.get('custom_fields') or [], commit=False)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to replace post %s from canonical JSON: %s", post.id, e)
            raise
        return post

    @staticmethod
    def dumps(data: Dict[str, Any]) -> str:
        return json.dumps(data, indent=2, sort_keys=True, default=str)
