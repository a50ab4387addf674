"""
Post Service for the CMS.

This service centralizes the business logic of posts: creation (with module
seeding from templates or post type defaults), updates with slug redirects
and status permission checks, mode-aware saves into the review layers, soft
deletion, bulk actions, reordering and scheduled publication. Webhook events
are dispatched after every successful commit.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.base import utcnow
from models.content.module import ModuleInstance, PostModule
from models.content.post import Post
from models.content.template import Template
from core.exceptions import CmsError, ConflictError, ForbiddenError, NotFoundError
from core.utils.string import slugify
from services import content_versioning as cv
from services.authorization_service import can_bulk_action, can_update_status
from services.locale_service import LocaleService
from services.module_registry import module_registry
from services.post_types import post_type_registry
from services.url_pattern_service import UrlPatternService
from services.webhook_service import EventType, WebhookService

logger = logging.getLogger(__name__)

# Columns accepted by update_post besides slug and status
UPDATABLE_FIELDS = Post.CONTENT_FIELDS + ['parent_id', 'order_index', 'author_id', 'template_id']

# Post fields that review and ai-review saves keep in the draft JSON
STAGED_FIELDS = ['slug'] + Post.CONTENT_FIELDS


def _user_label(user: Any) -> str:
    return getattr(user, 'email', None) or 'system'


class PostService:
    """
    Provides methods for creating, editing and publishing posts.
    """

    @staticmethod
    def get_post(post_id: int, include_deleted: bool = False) -> Post:
        """
        Fetch a post by id.

        Raises:
            NotFoundError: If the post does not exist (or is in the trash)
        """
        post = db.session.get(Post, post_id)
        if post is None or (post.is_deleted and not include_deleted):
            raise NotFoundError("Post not found", meta={'post_id': post_id})
        return post

    @staticmethod
    def list_posts(post_type: Optional[str] = None, locale: Optional[str] = None,
                   status: Optional[str] = None, search: Optional[str] = None,
                   in_trash: bool = False, parent_id: Optional[int] = None,
                   page: int = 1, per_page: Optional[int] = None) -> Dict[str, Any]:
        """
        List posts with filters and pagination.

        Args:
            post_type: Filter by type
            locale: Filter by locale
            status: Filter by status
            search: Case-insensitive match on title or slug
            in_trash: List soft deleted posts instead of live ones
            parent_id: Filter by parent
            page: Page number (1-based)
            per_page: Page size (defaults to CMS_PAGINATION_DEFAULT, capped at CMS_PAGINATION_MAX)

        Returns:
            Dict[str, Any]: ``{"items": [...], "meta": {...}}``
        """
        default_size = int(current_app.config.get('CMS_PAGINATION_DEFAULT', 20))
        max_size = int(current_app.config.get('CMS_PAGINATION_MAX', 1000))
        per_page = max(1, min(int(per_page or default_size), max_size))
        page = max(1, int(page or 1))

        query = Post.query
        if in_trash:
            query = query.filter(Post.deleted_at.isnot(None))
        else:
            query = query.filter(Post.deleted_at.is_(None))
        if post_type:
            query = query.filter(Post.type == post_type)
        if locale:
            query = query.filter(Post.locale == locale)
        if status:
            query = query.filter(Post.status == status)
        if parent_id is not None:
            query = query.filter(Post.parent_id == parent_id)
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(or_(Post.title.ilike(like), Post.slug.ilike(like)))

        query = query.order_by(Post.order_index.asc(), Post.updated_at.desc())
        return Post.paginate_query(query, page=page, per_page=per_page)

    @staticmethod
    def _validate_parent(post_type: str, locale: str, parent_id: Optional[int],
                         post_id: Optional[int] = None) -> None:
        """
        Check that ``parent_id`` is usable as the parent of a post.

        Raises:
            CmsError: 400 for unknown parents, mismatched type/locale,
                non-hierarchical types and cycles
        """
        if parent_id is None:
            return
        config = post_type_registry.get(post_type)
        if config is not None and not config.hierarchy_enabled:
            raise CmsError(f"Post type '{post_type}' does not support hierarchy", status_code=400)
        if post_id is not None and parent_id == post_id:
            raise CmsError("A post cannot be its own parent", status_code=400)

        parent = db.session.get(Post, parent_id)
        if parent is None or parent.is_deleted:
            raise CmsError("Parent post not found", status_code=400, meta={'parent_id': parent_id})
        if parent.type != post_type or parent.locale != locale:
            raise CmsError("Parent must have the same type and locale", status_code=400)

        seen = {parent.id}
        cursor = parent.parent_id
        while cursor is not None:
            if cursor == post_id or cursor in seen:
                raise CmsError("Parent assignment would create a cycle", status_code=400,
                               meta={'parent_id': parent_id})
            seen.add(cursor)
            ancestor = db.session.get(Post, cursor)
            cursor = ancestor.parent_id if ancestor is not None else None

    @staticmethod
    def _find_or_create_global(module_type: str, global_slug: str,
                               props: Optional[Dict[str, Any]] = None) -> ModuleInstance:
        instance = ModuleInstance.query.filter_by(scope=ModuleInstance.SCOPE_GLOBAL,
                                                  global_slug=global_slug).first()
        if instance is None:
            instance = ModuleInstance(type=module_type, scope=ModuleInstance.SCOPE_GLOBAL,
                                      global_slug=global_slug,
                                      props=props or module_registry.get(module_type).default_props)
            db.session.add(instance)
        return instance

    @staticmethod
    def _seed_modules(post: Post, entries: Iterable[Dict[str, Any]]) -> int:
        """
        Place the modules described by ``entries`` on a new post.

        Entries carry ``type``, ``scope``, optional ``global_slug``, ``props``
        and ``locked``. Unknown module types are skipped.
        """
        seeded = 0
        for position, entry in enumerate(entries):
            module_type = entry.get('type')
            if not module_registry.has(module_type):
                logger.warning("Skipping unknown module type '%s' while seeding post %s",
                               module_type, post.id)
                continue
            config = module_registry.get(module_type)
            scope = entry.get('scope') or ModuleInstance.SCOPE_POST
            if scope == ModuleInstance.SCOPE_GLOBAL and entry.get('global_slug'):
                instance = PostService._find_or_create_global(module_type, entry['global_slug'],
                                                              entry.get('props'))
            else:
                instance = ModuleInstance(type=module_type, scope=ModuleInstance.SCOPE_POST,
                                          props=entry.get('props') or config.default_props)
                db.session.add(instance)
            post.post_modules.append(PostModule(
                module_instance=instance,
                order_index=entry.get('order_index', position),
                locked=bool(entry.get('locked')),
            ))
            seeded += 1
        return seeded

    @staticmethod
    def create_post(user: Any, type: str, locale: str, title: str, slug: Optional[str] = None,
                    status: str = Post.STATUS_DRAFT, excerpt: Optional[str] = None,
                    meta_title: Optional[str] = None, meta_description: Optional[str] = None,
                    template_id: Optional[int] = None, parent_id: Optional[int] = None,
                    scheduled_at: Optional[datetime] = None, seed_modules: bool = True,
                    **extra) -> Post:
        """
        Create a post.

        Args:
            user: Acting user (becomes the owner and author)
            type: Registered post type
            locale: Supported locale code
            title: Post title
            slug: URL slug (derived from the title when empty)
            status: Initial status
            excerpt: Optional excerpt
            meta_title: Optional SEO title
            meta_description: Optional SEO description
            template_id: Template used to seed modules
            parent_id: Parent post for hierarchical types
            scheduled_at: Publication time for scheduled posts
            seed_modules: Whether to place the template or default modules
            **extra: Further content fields (robots_json, jsonld_overrides, ...)

        Returns:
            Post: The new post

        Raises:
            CmsError: 400 for unknown types, unsupported locales and invalid data
            ConflictError: 409 for duplicate slugs or a second profile
            ForbiddenError: 403 when the initial status needs publish rights
        """
        config = post_type_registry.require(type)
        locale = LocaleService.require_supported(locale)
        slug = slugify(slug or title or '')
        if not slug:
            raise CmsError("Post slug is required", status_code=400)

        if Post.slug_taken(slug, locale):
            raise ConflictError("A post with this slug already exists in this locale",
                                meta={'slug': slug, 'locale': locale})

        if config.one_per_user and user is not None:
            existing = Post.active().filter_by(type=type, author_id=user.id).first()
            if existing is not None:
                raise ConflictError(f"You already have a {type} post",
                                    meta={'post_id': existing.id})

        if not can_update_status(user, status):
            raise ForbiddenError(f"Not allowed to create posts with status '{status}'")

        PostService._validate_parent(type, locale, parent_id)

        template = None
        if template_id is not None:
            template = Template.get_or_404(template_id, "Template not found")
            if template.post_type and template.post_type != type:
                raise CmsError("Template belongs to another post type", status_code=400,
                               meta={'template_post_type': template.post_type})

        fields = {k: v for k, v in extra.items() if k in Post.CONTENT_FIELDS}
        try:
            post = Post(type=type, locale=locale, slug=slug, title=title, status=status,
                        excerpt=excerpt, meta_title=meta_title, meta_description=meta_description,
                        template_id=template_id, parent_id=parent_id, scheduled_at=scheduled_at,
                        user_id=getattr(user, 'id', None), author_id=getattr(user, 'id', None),
                        **fields)
        except ValueError as e:
            raise CmsError(str(e), status_code=400)

        try:
            db.session.add(post)
            db.session.flush()

            if seed_modules and config.modules_enabled:
                if template is not None:
                    entries = [
                        {'type': tm.type, 'scope': tm.scope, 'global_slug': tm.global_slug,
                         'props': tm.props, 'locked': tm.locked, 'order_index': tm.order_index}
                        for tm in sorted(template.modules, key=lambda m: m.order_index)
                    ]
                else:
                    entries = config.default_modules
                PostService._seed_modules(post, entries)

            UrlPatternService.ensure_defaults_for_post_type(type, commit=False)
            if not post.canonical_url:
                post.canonical_url = UrlPatternService.build_post_path(post)

            from services.revision_service import RevisionService
            RevisionService.record_revision(post, cv.MODE_PUBLISH, user, change_summary="Created")
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to create post %s/%s: %s", locale, slug, e)
            raise

        logger.info("Created %s post %s (%s/%s)", type, post.id, locale, slug)
        WebhookService.dispatch(EventType.POST_CREATED, post.to_dict())
        if post.status == Post.STATUS_PUBLISHED:
            WebhookService.dispatch(EventType.POST_PUBLISHED, post.to_dict())
        return post

    @staticmethod
    def update_post(post: Post, user: Any = None, commit: bool = True, dispatch: bool = True,
                    **changes) -> Post:
        """
        Apply changes to a post's live columns.

        Args:
            post: Post to update
            user: Acting user (for status permission checks)
            commit: Whether to commit; callers composing larger operations pass False
            dispatch: Whether to fire webhook events (only when committing)
            **changes: ``slug``, ``status``, ``scheduled_at`` and the updatable fields

        Returns:
            Post: The updated post

        Raises:
            ConflictError: If the new slug is taken in the post's locale
            ForbiddenError: If the status change needs publish rights
            CmsError: 400 for invalid statuses or parents
        """
        previous_status = post.status
        old_path = None

        new_slug = changes.pop('slug', None)
        if new_slug is not None:
            new_slug = slugify(new_slug)
            if not new_slug:
                raise CmsError("Post slug cannot be empty", status_code=400)
            if new_slug != post.slug:
                if Post.slug_taken(new_slug, post.locale, exclude_id=post.id):
                    raise ConflictError("A post with this slug already exists in this locale",
                                        meta={'slug': new_slug, 'locale': post.locale})
                old_path = UrlPatternService.build_post_path(post)
            else:
                new_slug = None

        status = changes.pop('status', None)
        scheduled_at = changes.pop('scheduled_at', None)
        if status is not None and status != post.status and not can_update_status(user, status):
            raise ForbiddenError(f"Not allowed to change status to '{status}'",
                                 meta={'status': status})

        if 'parent_id' in changes and changes['parent_id'] != post.parent_id:
            PostService._validate_parent(post.type, post.locale, changes['parent_id'], post.id)

        try:
            if new_slug is not None:
                if post.canonical_url == old_path and 'canonical_url' not in changes:
                    changes['canonical_url'] = None
                post.slug = new_slug
            for field in UPDATABLE_FIELDS:
                if field in changes:
                    setattr(post, field, changes[field])
            if status is not None and (status != post.status or scheduled_at is not None):
                post.set_status(status, scheduled_at)
        except ValueError as e:
            raise CmsError(str(e), status_code=400)

        try:
            if new_slug is not None:
                if post.canonical_url is None:
                    post.canonical_url = UrlPatternService.build_post_path(post)
                UrlPatternService.add_slug_change_redirect(post, old_path)
            db.session.flush()
            if commit:
                db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to update post %s: %s", post.id, e)
            raise

        if commit and dispatch:
            PostService._dispatch_status_events(post, previous_status)
        return post

    @staticmethod
    def _dispatch_status_events(post: Post, previous_status: str) -> None:
        data = post.to_dict()
        WebhookService.dispatch(EventType.POST_UPDATED, data)
        if post.status == Post.STATUS_PUBLISHED and previous_status != Post.STATUS_PUBLISHED:
            WebhookService.dispatch(EventType.POST_PUBLISHED, data)
        elif previous_status == Post.STATUS_PUBLISHED and post.status != Post.STATUS_PUBLISHED:
            WebhookService.dispatch(EventType.POST_UNPUBLISHED, data)

    @staticmethod
    def save_post(post: Post, user: Any, mode: str = cv.MODE_PUBLISH,
                  data: Optional[Dict[str, Any]] = None) -> Post:
        """
        Save editor changes in a content mode.

        In publish mode the changes go to the live columns. In review and
        ai-review mode module changes go to the layer's shadow columns and the
        post fields are stored in the layer's draft JSON together with
        ``savedAt`` / ``savedBy``.

        Args:
            post: Post being edited
            user: Acting user
            mode: publish, review or ai-review
            data: Post fields plus optional ``custom_fields``, ``modules``
                (items with ``id`` and the update_post_module arguments) and
                ``taxonomy_term_ids``

        Returns:
            Post: The saved post
        """
        from services.custom_field_service import CustomFieldService
        from services.post_module_service import PostModuleService
        from services.revision_service import RevisionService
        from services.serializer_service import SerializerService

        mode = cv.normalize_mode(mode)
        data = dict(data or {})
        module_patches = data.pop('modules', None) or []
        custom_fields = data.pop('custom_fields', None)
        term_ids = data.pop('taxonomy_term_ids', None)
        field_changes = {k: v for k, v in data.items() if k in ['slug', 'status', 'scheduled_at'] + UPDATABLE_FIELDS}

        for patch in module_patches:
            patch = dict(patch)
            post_module_id = patch.pop('id', None) or patch.pop('post_module_id', None)
            if post_module_id is None:
                continue
            PostModuleService.update_post_module(post_module_id, mode=mode, commit=False,
                                                 refresh_snapshot=False, **patch)

        if mode == cv.MODE_PUBLISH:
            previous_status = post.status
            PostService.update_post(post, user, commit=False, **field_changes)
            if custom_fields is not None:
                CustomFieldService.upsert_custom_fields(post, custom_fields, commit=False)
            if term_ids is not None:
                from services.taxonomy_service import TaxonomyService
                TaxonomyService.apply_assignments(post, term_ids, commit=False)
            try:
                RevisionService.record_revision(post, cv.MODE_PUBLISH, user)
                db.session.commit()
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error("Failed to save post %s: %s", post.id, e)
                raise
            PostService._dispatch_status_events(post, previous_status)
            return post

        # Status and structure are live attributes and are never staged
        field_changes = {k: v for k, v in field_changes.items() if k in STAGED_FIELDS}

        try:
            snapshot = SerializerService.draft_snapshot(post, mode, _user_label(user))
            for field, value in field_changes.items():
                if isinstance(value, datetime):
                    value = value.isoformat()
                snapshot[field] = value
            if custom_fields is not None:
                merged = {entry['slug']: entry.get('value') for entry in snapshot.get('custom_fields') or []}
                for entry in custom_fields:
                    if isinstance(entry, dict) and entry.get('slug'):
                        merged[entry['slug']] = entry.get('value')
                snapshot['custom_fields'] = [{'slug': k, 'value': v} for k, v in sorted(merged.items())]
            if term_ids is not None:
                snapshot['taxonomy_term_ids'] = sorted(int(t) for t in term_ids)
            setattr(post, cv.draft_column(mode), snapshot)
            RevisionService.record_revision(post, mode, user)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to save %s draft of post %s: %s", mode, post.id, e)
            raise

        logger.info("Saved %s draft of post %s", mode, post.id)
        return post

    @staticmethod
    def delete_post(post: Post, user: Any = None) -> Post:
        """Move a post to the trash."""
        try:
            post.soft_delete(commit=False)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to delete post %s: %s", post.id, e)
            raise
        logger.info("Post %s moved to trash by %s", post.id, _user_label(user))
        WebhookService.dispatch(EventType.POST_DELETED, post.to_dict())
        return post

    @staticmethod
    def restore_post(post: Post, user: Any = None) -> Post:
        """
        Restore a post from the trash.

        Raises:
            CmsError: 400 if the post is not deleted
        """
        if not post.is_deleted:
            raise CmsError("Post is not in the trash", status_code=400)
        try:
            post.restore(commit=False)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to restore post %s: %s", post.id, e)
            raise
        logger.info("Post %s restored by %s", post.id, _user_label(user))
        WebhookService.dispatch(EventType.POST_RESTORED, post.to_dict())
        return post

    @staticmethod
    def bulk_action(ids: List[int], action: str, user: Any) -> Dict[str, Any]:
        """
        Apply one action to many posts.

        Args:
            ids: Post ids
            action: ``publish``, ``draft``, ``archive`` or ``delete``
            user: Acting user

        Returns:
            Dict[str, Any]: ``{"action": ..., "updated": [ids]}``

        Raises:
            CmsError: 400 for unknown actions, empty id lists and deleting
                posts that are not archived (ids in ``meta.not_archived``)
            ForbiddenError: If the user may not perform the action
        """
        targets = {
            'publish': Post.STATUS_PUBLISHED,
            'draft': Post.STATUS_DRAFT,
            'archive': Post.STATUS_ARCHIVED,
        }
        if action not in targets and action != 'delete':
            raise CmsError(f"Unknown bulk action: {action}", status_code=400)
        if not ids:
            raise CmsError("No post ids given", status_code=400)
        if not can_bulk_action(user, action):
            raise ForbiddenError(f"Not allowed to {action} posts", meta={'action': action})

        unique_ids = sorted({int(i) for i in ids})
        posts = Post.query.filter(Post.id.in_(unique_ids), Post.deleted_at.is_(None)).all()

        if action == 'delete':
            not_archived = [p.id for p in posts if p.status != Post.STATUS_ARCHIVED]
            if not_archived:
                raise CmsError("Only archived posts can be deleted", status_code=400,
                               meta={'not_archived': not_archived})

        previous = {p.id: p.status for p in posts}
        try:
            for post in posts:
                if action == 'delete':
                    post.soft_delete(commit=False)
                else:
                    post.set_status(targets[action])
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Bulk %s failed: %s", action, e)
            raise

        logger.info("Bulk %s applied to %d posts by %s", action, len(posts), _user_label(user))
        for post in posts:
            if action == 'delete':
                WebhookService.dispatch(EventType.POST_DELETED, post.to_dict())
            else:
                PostService._dispatch_status_events(post, previous[post.id])
        return {'action': action, 'updated': [p.id for p in posts]}

    @staticmethod
    def reorder_posts(scope: Dict[str, Any], items: List[Dict[str, Any]]) -> int:
        """
        Update ``order_index`` (and optionally ``parent_id``) of sibling posts.

        Args:
            scope: ``{"type": ..., "locale": ...}`` every item must belong to
            items: ``{"id", "order_index", "parent_id"?}`` entries

        Returns:
            int: Number of posts updated

        Raises:
            CmsError: 400 for items outside the scope or parent cycles
            NotFoundError: For unknown post ids
        """
        post_type = scope.get('type')
        locale = scope.get('locale')
        if not post_type or not locale:
            raise CmsError("Reorder scope requires type and locale", status_code=400)

        posts = {}
        for item in items:
            post = db.session.get(Post, item.get('id'))
            if post is None or post.is_deleted:
                raise NotFoundError("Post not found", meta={'post_id': item.get('id')})
            if post.type != post_type or post.locale != locale:
                raise CmsError("Post does not match the reorder scope", status_code=400,
                               meta={'post_id': post.id})
            posts[post.id] = post

        try:
            for item in items:
                post = posts[item['id']]
                if 'parent_id' in item and item['parent_id'] != post.parent_id:
                    PostService._validate_parent(post_type, locale, item['parent_id'], post.id)
                    post.parent_id = item['parent_id']
                post.order_index = int(item.get('order_index', post.order_index))
            db.session.commit()
        except CmsError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to reorder posts: %s", e)
            raise
        return len(items)

    @staticmethod
    def publish_scheduled_posts(now: Optional[datetime] = None) -> List[Post]:
        """
        Publish every scheduled post whose time has come.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            List[Post]: Posts published
        """
        due = Post.due_for_publication(now or utcnow())
        if not due:
            return []
        try:
            for post in due:
                post.set_status(Post.STATUS_PUBLISHED)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to publish scheduled posts: %s", e)
            raise
        for post in due:
            logger.info("Published scheduled post %s", post.id)
            WebhookService.dispatch(EventType.POST_PUBLISHED, post.to_dict())
        return due
