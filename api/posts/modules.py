"""
Post module routes: placing, editing, removing and ordering modules on a post.

Routes are registered on the ``posts`` blueprint. ``mode`` selects the
content layer an edit applies to.
"""

from flask import g, request

from api.common import load_json, success
from core.exceptions import ForbiddenError, NotFoundError
from services import content_versioning as cv
from services.authorization_service import (
    has_permission, login_required, permission_for_save_mode, permission_required
)
from services.post_module_service import PostModuleService
from services.post_service import PostService
from .routes import posts_api
from .schemas import module_add_schema, module_reorder_schema, module_update_schema


def _require_save_permission(mode: str) -> str:
    mode = cv.normalize_mode(mode)
    permission = permission_for_save_mode(mode)
    if not has_permission(g.user, permission):
        raise ForbiddenError(f"Editing modules in {mode} mode requires {permission}",
                             meta={'permission': permission})
    return mode


def _module_of(post_id: int, post_module_id: int):
    post_module = PostModuleService.get_post_module(post_module_id)
    if post_module.post_id != post_id:
        raise NotFoundError("Post module not found", meta={'post_module_id': post_module_id})
    return post_module


@posts_api.route('/<int:post_id>/modules', methods=['GET'])
@login_required
def list_post_modules(post_id: int):
    post = PostService.get_post(post_id)
    return success([pm.to_dict() for pm in sorted(post.post_modules, key=lambda pm: pm.order_index or 0)])


@posts_api.route('/<int:post_id>/modules', methods=['POST'])
@login_required
def add_post_module(post_id: int):
    """
    Place a module on a post.

    Returns:
        201 CREATED: The placement
        400 BAD REQUEST: Type not allowed, bad scope or modules disabled
        404 NOT FOUND: Unknown post or module type
    """
    data = load_json(module_add_schema)
    mode = _require_save_permission(data.pop('mode'))
    post = PostService.get_post(post_id)
    post_module = PostModuleService.add_module_to_post(post.id, data.pop('type'), mode=mode, **data)
    return success(post_module.to_dict(), 201)


@posts_api.route('/<int:post_id>/modules/<int:post_module_id>', methods=['PATCH', 'PUT'])
@login_required
def update_post_module(post_id: int, post_module_id: int):
    data = load_json(module_update_schema)
    mode = _require_save_permission(data.pop('mode'))
    _module_of(post_id, post_module_id)
    post_module = PostModuleService.update_post_module(post_module_id, mode=mode, **data)
    return success(post_module.to_dict())


@posts_api.route('/<int:post_id>/modules/<int:post_module_id>', methods=['DELETE'])
@login_required
def delete_post_module(post_id: int, post_module_id: int):
    """Remove a module, or flag it as removed in a draft layer (``?mode=``)."""
    mode = _require_save_permission(request.args.get('mode'))
    _module_of(post_id, post_module_id)
    PostModuleService.delete_post_module(post_module_id, mode=mode)
    return success(None, message="Module removed")


@posts_api.route('/<int:post_id>/modules/reorder', methods=['POST'])
@permission_required('posts.edit')
def reorder_post_modules(post_id: int):
    post = PostService.get_post(post_id)
    data = load_json(module_reorder_schema)
    updated = PostModuleService.reorder_post_modules(post, data['items'])
    return success({'updated': updated})
