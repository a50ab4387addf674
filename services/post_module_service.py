"""
Post module and global module operations.

Placing, editing and removing modules honours the content mode: publish
edits the live columns, review and ai-review write the layer's shadow
columns and flags and then refresh the post's draft snapshot.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.content.module import ModuleInstance, PostModule
from models.content.post import Post
from core.exceptions import CmsError, ConflictError, NotFoundError
from services import content_versioning as cv
from services.module_registry import module_registry
from services.post_types import post_type_registry

logger = logging.getLogger(__name__)


def _require_modules_enabled(post: Post) -> None:
    config = post_type_registry.get(post.type)
    if config is not None and not config.modules_enabled:
        raise CmsError("Modules are disabled for this post type", status_code=400,
                       meta={'post_type': post.type})


def _normalize_scope(scope: Optional[str]) -> str:
    if scope in (None, '', 'local'):
        return ModuleInstance.SCOPE_POST
    if scope not in ModuleInstance.VALID_SCOPES:
        raise CmsError(f"Invalid module scope: {scope}", status_code=400,
                       meta={'allowed': ['local'] + ModuleInstance.VALID_SCOPES})
    return scope


class PostModuleService:
    """
    Provides methods to manage the module layout of posts and the shared
    global module instances.
    """

    @staticmethod
    def get_post_module(post_module_id: int) -> PostModule:
        post_module = db.session.get(PostModule, post_module_id)
        if post_module is None:
            raise NotFoundError("Post module not found", meta={'post_module_id': post_module_id})
        return post_module

    @staticmethod
    def _refresh(post: Post, mode: str) -> None:
        if cv.is_draft_mode(mode):
            from services.review_service import ReviewService
            ReviewService.refresh_draft_snapshot(post, mode)

    @staticmethod
    def add_module_to_post(post_id: int, module_type: str, scope: str = ModuleInstance.SCOPE_POST,
                           props: Optional[Dict[str, Any]] = None, global_slug: Optional[str] = None,
                           order_index: Optional[int] = None, locked: bool = False,
                           admin_label: Optional[str] = None, mode: str = cv.MODE_PUBLISH,
                           commit: bool = True) -> PostModule:
        """
        Place a module on a post.

        Args:
            post_id: Target post
            module_type: Registered module type
            scope: ``post`` (or ``local``) for a new instance, ``global`` to share one
            props: Initial props; empty props fall back to the type's defaults
            global_slug: Slug of the global instance (found or created)
            order_index: Position; defaults to after the last module
            locked: Whether editors may move or remove the module
            admin_label: Label shown in the editor
            mode: Content mode; draft modes flag the row as added in that layer
            commit: Whether to commit

        Returns:
            PostModule: The new placement

        Raises:
            NotFoundError: If the post or module type does not exist
            CmsError: 400 when modules are disabled, the scope is not allowed
                or a global placement has no slug
        """
        post = db.session.get(Post, post_id)
        if post is None:
            raise NotFoundError("Post not found", meta={'post_id': post_id})
        mode = cv.normalize_mode(mode)
        config = module_registry.get(module_type)
        _require_modules_enabled(post)
        if not config.allows_post_type(post.type):
            raise CmsError(f"Module '{module_type}' is not allowed on {post.type} posts", status_code=400)

        scope = _normalize_scope(scope)
        if scope not in config.allowed_scopes:
            raise CmsError(f"Module '{module_type}' cannot be placed with scope '{scope}'",
                           status_code=400, meta={'allowed': config.allowed_scopes})
        if scope == ModuleInstance.SCOPE_GLOBAL and not global_slug:
            raise CmsError("Global modules require a global_slug", status_code=400)

        initial_props = props if props else config.default_props

        try:
            if scope == ModuleInstance.SCOPE_GLOBAL:
                instance = ModuleInstance.query.filter_by(scope=ModuleInstance.SCOPE_GLOBAL,
                                                          global_slug=global_slug).first()
                if instance is None:
                    instance = ModuleInstance(type=module_type, scope=scope, global_slug=global_slug,
                                              props=initial_props)
                    db.session.add(instance)
                elif instance.type != module_type:
                    raise CmsError(f"Global module '{global_slug}' is a {instance.type} module",
                                   status_code=400)
            else:
                instance = ModuleInstance(type=module_type, scope=scope, props=initial_props)
                db.session.add(instance)

            if order_index is None:
                current = [pm.order_index for pm in post.post_modules if pm.order_index is not None]
                order_index = (max(current) if current else -1) + 1

            post_module = PostModule(module_instance=instance, order_index=order_index,
                                     locked=bool(locked), admin_label=admin_label)
            flag = cv.added_flag(mode)
            if flag:
                setattr(post_module, flag, True)
            post.post_modules.append(post_module)
            db.session.flush()

            PostModuleService._refresh(post, mode)
            if commit:
                db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to add %s module to post %s: %s", module_type, post_id, e)
            raise

        logger.info("Added %s module %s to post %s (%s)", module_type, post_module.id, post_id, mode)
        return post_module

    @staticmethod
    def update_post_module(post_module_id: int, mode: str = cv.MODE_PUBLISH, commit: bool = True,
                           refresh_snapshot: bool = True, **changes) -> PostModule:
        """
        Edit a placed module.

        Local modules own their props, so ``overrides`` (or ``props``) are
        deep-merged into the mode's props and that mode's overrides are
        cleared. Global modules store ``overrides`` on the placement.
        ``order_index`` and ``admin_label`` only change in publish mode.

        Args:
            post_module_id: Placement id
            mode: Content mode
            commit: Whether to commit
            refresh_snapshot: Whether to rebuild the draft JSON in draft modes
            **changes: ``overrides``, ``props``, ``order_index``, ``locked``, ``admin_label``

        Returns:
            PostModule: The updated placement

        Raises:
            NotFoundError: If the placement does not exist
            CmsError: 400 when modules are disabled or ``order_index`` is given for a locked module
        """
        post_module = PostModuleService.get_post_module(post_module_id)
        post = post_module.post
        mode = cv.normalize_mode(mode)
        _require_modules_enabled(post)

        order_index = changes.get('order_index')
        if post_module.locked and order_index is not None:
            raise CmsError("Cannot reorder a locked module", status_code=400,
                           meta={'post_module_id': post_module_id})

        try:
            if order_index is not None and mode == cv.MODE_PUBLISH:
                post_module.order_index = int(order_index)
            if 'admin_label' in changes and mode == cv.MODE_PUBLISH:
                post_module.admin_label = changes['admin_label']

            patch = changes.get('overrides', changes.get('props'))
            if 'overrides' in changes or 'props' in changes:
                instance = post_module.module_instance
                if not instance.is_global:
                    merged = cv.deep_merge(cv.read_props(instance, mode), patch or {})
                    setattr(instance, cv.props_column(mode), merged)
                    setattr(post_module, cv.overrides_column(mode), None)
                else:
                    setattr(post_module, cv.overrides_column(mode), dict(patch) if patch else None)

            if changes.get('locked') is not None:
                post_module.locked = bool(changes['locked'])

            db.session.flush()
            if refresh_snapshot:
                PostModuleService._refresh(post, mode)
            if commit:
                db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to update post module %s: %s", post_module_id, e)
            raise
        return post_module

    @staticmethod
    def delete_post_module(post_module_id: int, mode: str = cv.MODE_PUBLISH, commit: bool = True) -> None:
        """
        Remove a module from a post.

        In publish mode the placement (and a local instance) is deleted. In
        draft modes the placement is flagged as deleted in that layer, unless
        it was added in the same layer, in which case it is removed outright.

        Raises:
            NotFoundError: If the placement does not exist
            CmsError: 400 when modules are disabled or the module is locked
        """
        post_module = PostModuleService.get_post_module(post_module_id)
        post = post_module.post
        mode = cv.normalize_mode(mode)
        _require_modules_enabled(post)
        if post_module.locked:
            raise CmsError("Locked modules cannot be removed", status_code=400,
                           meta={'post_module_id': post_module_id})

        try:
            added = cv.added_flag(mode)
            if mode == cv.MODE_PUBLISH or (added and getattr(post_module, added)):
                PostModuleService._remove(post, post_module)
            else:
                setattr(post_module, cv.deleted_flag(mode), True)
            db.session.flush()
            PostModuleService._refresh(post, mode)
            if commit:
                db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to delete post module %s: %s", post_module_id, e)
            raise
        logger.info("Removed module %s from post %s (%s)", post_module_id, post.id, mode)

    @staticmethod
    def _remove(post: Post, post_module: PostModule) -> None:
        """Delete a placement and, for local modules, its instance (no commit)."""
        instance = post_module.module_instance
        if post_module in post.post_modules:
            post.post_modules.remove(post_module)
        db.session.delete(post_module)
        if instance is not None and not instance.is_global:
            db.session.delete(instance)

    @staticmethod
    def reorder_post_modules(post: Post, items: List[Dict[str, Any]]) -> int:
        """
        Set the order of a post's modules in publish mode.

        Args:
            post: Post
            items: ``{"id": post_module_id, "order_index": n}`` entries
        """
        count = 0
        for item in items:
            post_module = PostModuleService.get_post_module(item['id'])
            if post_module.post_id != post.id:
                raise CmsError("Module does not belong to this post", status_code=400,
                               meta={'post_module_id': post_module.id})
            PostModuleService.update_post_module(post_module.id, order_index=item.get('order_index'),
                                                 commit=False)
            count += 1
        db.session.commit()
        return count

    # Global modules

    @staticmethod
    def list_globals(search: Optional[str] = None, module_type: Optional[str] = None) -> List[ModuleInstance]:
        query = ModuleInstance.query.filter_by(scope=ModuleInstance.SCOPE_GLOBAL)
        if module_type:
            query = query.filter_by(type=module_type)
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(db.or_(ModuleInstance.global_slug.ilike(like),
                                        ModuleInstance.global_label.ilike(like)))
        return query.order_by(ModuleInstance.global_slug.asc()).all()

    @staticmethod
    def get_global(global_id: int) -> ModuleInstance:
        instance = db.session.get(ModuleInstance, global_id)
        if instance is None or not instance.is_global:
            raise NotFoundError("Global module not found", meta={'id': global_id})
        return instance

    @staticmethod
    def create_global(module_type: str, global_slug: str, props: Optional[Dict[str, Any]] = None,
                      global_label: Optional[str] = None) -> ModuleInstance:
        """
        Create a shared module instance.

        Raises:
            NotFoundError: Unknown module type
            CmsError: 400 when the type cannot be global
            ConflictError: 409 when the slug is taken
        """
        config = module_registry.get(module_type)
        if ModuleInstance.SCOPE_GLOBAL not in config.allowed_scopes:
            raise CmsError(f"Module '{module_type}' cannot be global", status_code=400)
        if ModuleInstance.query.filter_by(global_slug=global_slug).first() is not None:
            raise ConflictError(f"Global module '{global_slug}' already exists")
        instance = ModuleInstance(type=module_type, scope=ModuleInstance.SCOPE_GLOBAL,
                                  global_slug=global_slug, global_label=global_label,
                                  props=props or config.default_props)
        try:
            db.session.add(instance)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to create global module %s: %s", global_slug, e)
            raise
        return instance

    @staticmethod
    def update_global(global_id: int, props: Optional[Dict[str, Any]] = None,
                      global_label: Optional[str] = None, mode: str = cv.MODE_PUBLISH) -> ModuleInstance:
        """Deep-merge ``props`` into the mode's props of a global instance."""
        instance = PostModuleService.get_global(global_id)
        mode = cv.normalize_mode(mode)
        try:
            if props is not None:
                merged = cv.deep_merge(cv.read_props(instance, mode), props)
                setattr(instance, cv.props_column(mode), merged)
            if global_label is not None:
                instance.global_label = global_label
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to update global module %s: %s", global_id, e)
            raise
        return instance

    @staticmethod
    def delete_global(global_id: int) -> None:
        """
        Raises:
            ConflictError: 409 while posts still place the module
        """
        instance = PostModuleService.get_global(global_id)
        usage = instance.usage_count
        if usage:
            raise ConflictError("Global module is still in use", meta={'usage_count': usage})
        instance.delete()
        logger.info("Deleted global module %s", instance.global_slug)
