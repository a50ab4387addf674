"""
Post revision history.

Revisions are canonical snapshots recorded on saves, promotions and
rejections. Only the newest ``CMS_REVISION_LIMIT`` revisions of a post are
kept.
"""

import logging
from typing import Any, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.content.post import Post
from models.content.revision import PostRevision
from core.exceptions import CmsError, ForbiddenError, NotFoundError
from services import content_versioning as cv
from services.authorization_service import can_update_status
from services.serializer_service import SerializerService

logger = logging.getLogger(__name__)

# Serializer mode used for each revision mode
_SNAPSHOT_MODES = {
    PostRevision.MODE_APPROVED: cv.MODE_PUBLISH,
    PostRevision.MODE_REVIEW: cv.MODE_REVIEW,
    PostRevision.MODE_AI_REVIEW: cv.MODE_AI_REVIEW,
}


def revision_mode_for(mode: str) -> str:
    """Revision mode name for a content mode (publish maps to approved)."""
    mode = cv.normalize_mode(mode)
    return PostRevision.MODE_APPROVED if mode == cv.MODE_PUBLISH else mode


class RevisionService:
    """Record, list, prune and revert post revisions."""

    @staticmethod
    def record_revision(post: Post, mode: str = PostRevision.MODE_APPROVED, user: Any = None,
                        change_summary: Optional[str] = None, commit: bool = False) -> PostRevision:
        """
        Snapshot a post into a new revision and prune old ones.

        Args:
            post: Post to snapshot
            mode: ``approved``, ``review`` or ``ai-review`` (content mode names accepted)
            user: Acting user
            change_summary: Optional description
            commit: Whether to commit (callers usually commit their own transaction)

        Returns:
            PostRevision: The new revision
        """
        if mode not in PostRevision.VALID_MODES:
            mode = revision_mode_for(mode)
        snapshot = SerializerService.serialize(post, _SNAPSHOT_MODES[mode])
        revision = PostRevision(
            post_id=post.id,
            snapshot=snapshot,
            mode=mode,
            user_id=getattr(user, 'id', None),
            change_summary=change_summary,
        )
        db.session.add(revision)
        db.session.flush()
        RevisionService.prune(post.id)
        if commit:
            db.session.commit()
        return revision

    @staticmethod
    def prune(post_id: int, limit: Optional[int] = None) -> int:
        """
        Delete revisions beyond the newest ``limit``.

        Returns:
            int: Number of revisions deleted
        """
        limit = limit or int(current_app.config.get('CMS_REVISION_LIMIT', 20))
        stale = PostRevision.query.filter_by(post_id=post_id) \
            .order_by(PostRevision.revision_number.desc()) \
            .offset(limit).all()
        for revision in stale:
            db.session.delete(revision)
        if stale:
            db.session.flush()
            logger.debug("Pruned %d revisions of post %s", len(stale), post_id)
        return len(stale)

    @staticmethod
    def prune_all(limit: Optional[int] = None) -> int:
        """Prune every post's revisions; used by the CLI."""
        total = 0
        try:
            for (post_id,) in db.session.query(PostRevision.post_id).distinct().all():
                total += RevisionService.prune(post_id, limit)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to prune revisions: %s", e)
            raise
        return total

    @staticmethod
    def list_revisions(post: Post, limit: Optional[int] = None) -> List[PostRevision]:
        """
        Newest revisions of a post.

        Args:
            post: Post
            limit: Number of revisions, clamped to 1..50 (default 20)
        """
        try:
            limit = int(limit) if limit is not None else 20
        except (TypeError, ValueError):
            limit = 20
        limit = max(1, min(limit, 50))
        return PostRevision.for_post(post.id, limit)

    @staticmethod
    def get_revision(post: Post, revision_id: int) -> PostRevision:
        revision = db.session.get(PostRevision, revision_id)
        if revision is None or revision.post_id != post.id:
            raise NotFoundError("Revision not found")
        return revision

    @staticmethod
    def revert_to_revision(post: Post, revision: PostRevision, user: Any = None) -> Post:
        """
        Restore a revision.

        Review revisions are restored into ``review_draft``; approved
        revisions re-apply the post fields and custom fields to the live post.

        Raises:
            ForbiddenError: When the revision would change the status without publish rights
        """
        from services.custom_field_service import CustomFieldService
        from services.post_service import PostService

        snapshot = revision.snapshot or {}
        fields = dict(snapshot.get('post') or {})

        try:
            if revision.mode in (PostRevision.MODE_REVIEW, PostRevision.MODE_AI_REVIEW):
                draft = {k: v for k, v in fields.items() if k not in ('type', 'locale')}
                draft['modules'] = snapshot.get('modules') or []
                draft['savedAt'] = revision.created_at.isoformat() if revision.created_at else None
                draft['savedBy'] = getattr(user, 'email', None) or 'revert'
                setattr(post, cv.draft_column(revision.mode), draft)
            else:
                status = fields.get('status')
                if status and status != post.status and not can_update_status(user, status):
                    raise ForbiddenError("Not allowed to change status while reverting")
                changes = {k: fields[k] for k in ['slug', 'title'] + Post.CONTENT_FIELDS if k in fields}
                if status and status != post.status:
                    changes['status'] = status
                PostService.update_post(post, user, commit=False, dispatch=False, **changes)
                CustomFieldService.upsert_custom_fields(post, fields.get('custom_fields') or [], commit=False)

            RevisionService.record_revision(
                post, revision.mode, user,
                change_summary=f"Reverted to revision {revision.revision_number}"
            )
            db.session.commit()
        except CmsError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to revert post %s to revision %s: %s", post.id, revision.id, e)
            raise
        return post
