"""
Posts API routes for the CMS.

Covers listing, creation, mode-aware saving, review approval, trash,
bulk actions, ordering, revisions and canonical JSON import/export.
Translation and variation routes live in ``family.py``; post module routes
in ``modules.py``.
"""

import logging

from flask import Blueprint, g, request

from api.common import load_json, page_args, paginated, success
from core.exceptions import CmsError, ForbiddenError
from models.content.post import Post
from services import content_versioning as cv
from services.agents import AgentExecutor
from services.agents.registry import SCOPE_AI_REVIEW_SAVE, SCOPE_POST_PUBLISH, SCOPE_REVIEW_SAVE
from services.authorization_service import (
    has_permission, login_required, permission_for_save_mode, permission_required
)
from services.post_service import PostService
from services.review_service import ReviewService
from services.revision_service import RevisionService
from services.serializer_service import SerializerService
from .schemas import (
    bulk_action_schema, post_create_schema, post_save_schema, reorder_schema,
    review_action_schema
)

logger = logging.getLogger(__name__)

# Create blueprint for posts API routes
posts_api = Blueprint('posts', __name__, url_prefix='/posts')

_APPROVE_PERMISSIONS = {
    cv.MODE_REVIEW: 'posts.review.approve',
    cv.MODE_AI_REVIEW: 'posts.ai-review.approve',
}


def _mode_arg() -> str:
    return cv.normalize_mode(request.args.get('mode'))


def _detail(post: Post, mode: str = cv.MODE_PUBLISH):
    return {'post': post.to_dict(include_drafts=True), 'content': SerializerService.serialize(post, mode)}


@posts_api.route('', methods=['GET'])
@login_required
def list_posts():
    """
    List posts.

    Query Parameters:
        type, locale, status, search, parent_id: Filters
        trash: ``1`` to list soft deleted posts
        page, per_page: Pagination

    Returns:
        200 OK: Posts with pagination meta
    """
    parent_id = request.args.get('parent_id', type=int)
    result = PostService.list_posts(
        post_type=request.args.get('type'),
        locale=request.args.get('locale'),
        status=request.args.get('status'),
        search=request.args.get('search'),
        in_trash=request.args.get('trash', '').lower() in ('1', 'true', 'yes'),
        parent_id=parent_id,
        **page_args()
    )
    return paginated(result)


@posts_api.route('', methods=['POST'])
@permission_required('posts.create')
def create_post():
    """
    Create a post.

    Returns:
        201 CREATED: The new post
        400 BAD REQUEST: Invalid data, unknown type or unsupported locale
        403 FORBIDDEN: Initial status needs publish rights
        409 CONFLICT: Slug already used in the locale
    """
    data = load_json(post_create_schema)
    post = PostService.create_post(g.user, **data)
    return success(_detail(post), 201)


@posts_api.route('/<int:post_id>', methods=['GET'])
@login_required
def get_post(post_id: int):
    """
    Get a post with its content as seen in ``?mode=`` (publish, review or ai-review).
    """
    post = PostService.get_post(post_id, include_deleted=True)
    return success(_detail(post, _mode_arg()))


@posts_api.route('/<int:post_id>', methods=['PUT', 'PATCH'])
@login_required
def save_post(post_id: int):
    """
    Save a post in a content mode.

    Request Body:
        ``mode`` plus post fields, ``custom_fields``, ``taxonomy_term_ids``
        and ``modules`` (placement patches with ``id``)

    Returns:
        200 OK: The saved post and its content in the saved mode
        403 FORBIDDEN: Missing the save permission of the mode
    """
    data = load_json(post_save_schema)
    mode = cv.normalize_mode(data.pop('mode', None))
    permission = permission_for_save_mode(mode)
    if not has_permission(g.user, permission):
        raise ForbiddenError(f"Saving in {mode} mode requires {permission}",
                             meta={'permission': permission})

    post = PostService.get_post(post_id)
    PostService.save_post(post, g.user, mode=mode, data=data)

    if mode == cv.MODE_REVIEW:
        AgentExecutor.trigger(SCOPE_REVIEW_SAVE, post, g.user)
    elif mode == cv.MODE_AI_REVIEW:
        AgentExecutor.trigger(SCOPE_AI_REVIEW_SAVE, post, g.user)
    elif post.status == Post.STATUS_PUBLISHED:
        AgentExecutor.trigger(SCOPE_POST_PUBLISH, post, g.user)
    return success(_detail(post, mode))


@posts_api.route('/<int:post_id>', methods=['DELETE'])
@permission_required('posts.delete')
def delete_post(post_id: int):
    """Move a post to the trash."""
    post = PostService.get_post(post_id)
    PostService.delete_post(post, g.user)
    return success(post.to_dict(), message="Post moved to trash")


@posts_api.route('/<int:post_id>/restore', methods=['POST'])
@permission_required('posts.delete')
def restore_post(post_id: int):
    post = PostService.get_post(post_id, include_deleted=True)
    PostService.restore_post(post, g.user)
    return success(post.to_dict(), message="Post restored")


@posts_api.route('/<int:post_id>/approve', methods=['POST'])
@login_required
def approve_draft(post_id: int):
    """
    Promote a draft layer.

    ``review`` promotes the review draft to the live content;
    ``ai-review`` promotes the AI suggestions into the review draft.

    Returns:
        200 OK: ``promoted`` is False when the layer held no changes
        403 FORBIDDEN: Missing the approve permission of the layer
    """
    mode = cv.normalize_mode(load_json(review_action_schema)['mode'])
    permission = _APPROVE_PERMISSIONS[mode]
    if not has_permission(g.user, permission):
        raise ForbiddenError(f"Approving {mode} changes requires {permission}",
                             meta={'permission': permission})

    post = PostService.get_post(post_id)
    if mode == cv.MODE_REVIEW:
        promoted = ReviewService.promote_review(post, g.user)
        target_mode = cv.MODE_PUBLISH
    else:
        promoted = ReviewService.promote_ai_review_to_review(post, g.user)
        target_mode = cv.MODE_REVIEW
    return success({'promoted': promoted, **_detail(post, target_mode)})


@posts_api.route('/<int:post_id>/reject', methods=['POST'])
@login_required
def reject_draft(post_id: int):
    """Discard a draft layer."""
    mode = cv.normalize_mode(load_json(review_action_schema)['mode'])
    permission = _APPROVE_PERMISSIONS[mode]
    if not has_permission(g.user, permission):
        raise ForbiddenError(f"Rejecting {mode} changes requires {permission}",
                             meta={'permission': permission})
    post = PostService.get_post(post_id)
    discarded = ReviewService.reject_draft(post, mode, g.user)
    return success({'discarded': discarded, **_detail(post)})


@posts_api.route('/bulk', methods=['POST'])
@login_required
def bulk_action():
    """
    Apply ``publish``, ``draft``, ``archive`` or ``delete`` to many posts.

    Returns:
        200 OK: ``{"action", "updated"}``
        400 BAD REQUEST: Deleting posts that are not archived
        403 FORBIDDEN: Action not allowed for the role
    """
    data = load_json(bulk_action_schema)
    return success(PostService.bulk_action(data['ids'], data['action'], g.user))


@posts_api.route('/reorder', methods=['POST'])
@permission_required('posts.edit')
def reorder_posts():
    data = load_json(reorder_schema)
    updated = PostService.reorder_posts(data['scope'], data['items'])
    return success({'updated': updated})


# Revisions

@posts_api.route('/<int:post_id>/revisions', methods=['GET'])
@permission_required('posts.revisions.manage')
def list_revisions(post_id: int):
    post = PostService.get_post(post_id)
    limit = request.args.get('limit', type=int)
    return success([r.to_dict() for r in RevisionService.list_revisions(post, limit)])


@posts_api.route('/<int:post_id>/revisions/<int:revision_id>', methods=['GET'])
@permission_required('posts.revisions.manage')
def get_revision(post_id: int, revision_id: int):
    post = PostService.get_post(post_id)
    revision = RevisionService.get_revision(post, revision_id)
    return success(revision.to_dict(include_snapshot=True))


@posts_api.route('/<int:post_id>/revisions/<int:revision_id>/revert', methods=['POST'])
@permission_required('posts.revisions.manage')
def revert_revision(post_id: int, revision_id: int):
    """Restore the live content of a post from a revision snapshot."""
    post = PostService.get_post(post_id)
    revision = RevisionService.get_revision(post, revision_id)
    RevisionService.revert_to_revision(post, revision, g.user)
    return success(_detail(post))


# Import / export

@posts_api.route('/<int:post_id>/export', methods=['GET'])
@permission_required('posts.export')
def export_post(post_id: int):
    """Canonical JSON of a post in ``?mode=``."""
    post = PostService.get_post(post_id)
    return success(SerializerService.serialize(post, _mode_arg()))


@posts_api.route('/import', methods=['POST'])
@permission_required('posts.create')
def import_post():
    """Create a post from canonical JSON."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise CmsError("Request body must be a JSON object", status_code=400)
    post = SerializerService.import_create(payload, g.user)
    return success(_detail(post), 201)


@posts_api.route('/<int:post_id>/import', methods=['POST'])
@permission_required('posts.edit')
def import_into_post(post_id: int):
    """Replace the live content of a post with canonical JSON."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise CmsError("Request body must be a JSON object", status_code=400)
    post = PostService.get_post(post_id)
    SerializerService.import_replace(post, payload, g.user)
    return success(_detail(post))
