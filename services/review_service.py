"""
Review workflow: promoting and rejecting staged content.

Human edits staged in the review layer are promoted to the live columns by
``promote_review``. Agent edits staged in the ai-review layer are first
promoted into the review layer by ``promote_ai_review_to_review``. Either
layer can be discarded with ``reject_draft``.
"""

import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.content.post import Post
from models.content.revision import PostRevision
from core.exceptions import CmsError
from services import content_versioning as cv

logger = logging.getLogger(__name__)


def has_draft_changes(post: Post, mode: str) -> bool:
    """Whether a draft layer holds anything to promote or reject."""
    if getattr(post, cv.draft_column(mode)):
        return True
    props_col = cv.props_column(mode)
    overrides_col = cv.overrides_column(mode)
    for post_module in post.post_modules:
        if getattr(post_module, overrides_col) or getattr(post_module, cv.added_flag(mode)) \
                or getattr(post_module, cv.deleted_flag(mode)):
            return True
        instance = post_module.module_instance
        if not instance.is_global and getattr(instance, props_col):
            return True
    return False


class ReviewService:
    """Promote, reject and snapshot draft layers."""

    @staticmethod
    def refresh_draft_snapshot(post: Post, mode: str, saved_by: Optional[str] = None) -> dict:
        """
        Rebuild a post's draft JSON from the current granular state (no commit).

        Args:
            post: Post
            mode: review or ai-review
            saved_by: Label stored as ``savedBy`` (keeps the previous one when omitted)

        Returns:
            dict: The new snapshot
        """
        from services.serializer_service import SerializerService

        mode = cv.normalize_mode(mode)
        column = cv.draft_column(mode)
        previous = getattr(post, column) or {}
        snapshot = SerializerService.draft_snapshot(post, mode, saved_by or previous.get('savedBy'))
        setattr(post, column, snapshot)
        return snapshot

    @staticmethod
    def promote_review(post: Post, user: Any = None) -> bool:
        """
        Make the review layer live.

        Local module props are merged with their review props, placements
        take their review overrides, rows deleted in review are removed, rows
        added in review become regular rows and the staged post fields are
        applied. An ``approved`` revision is recorded.

        Args:
            post: Post to promote
            user: Acting user

        Returns:
            bool: False when there was nothing to promote
        """
        from services.custom_field_service import CustomFieldService
        from services.post_module_service import PostModuleService
        from services.post_service import PostService, STAGED_FIELDS
        from services.revision_service import RevisionService
        from services.taxonomy_service import TaxonomyService

        if not has_draft_changes(post, cv.MODE_REVIEW):
            return False

        draft = dict(post.review_draft or {})
        try:
            for post_module in list(post.post_modules):
                if post_module.review_deleted:
                    PostModuleService._remove(post, post_module)
                    continue
                instance = post_module.module_instance
                if not instance.is_global and instance.review_props:
                    props = dict(instance.props or {})
                    props.update(instance.review_props)
                    instance.props = props
                    instance.review_props = None
                if post_module.review_overrides:
                    post_module.overrides = dict(post_module.review_overrides)
                post_module.review_overrides = None
                post_module.review_added = False
            db.session.flush()

            changes = {k: draft[k] for k in STAGED_FIELDS if k in draft and draft[k] != getattr(post, k)}
            PostService.update_post(post, user, commit=False, dispatch=False, **changes)
            if draft.get('custom_fields'):
                CustomFieldService.upsert_custom_fields(post, draft['custom_fields'], commit=False)
            if isinstance(draft.get('taxonomy_term_ids'), list):
                TaxonomyService.apply_assignments(post, draft['taxonomy_term_ids'], commit=False)
            post.review_draft = None

            RevisionService.record_revision(post, PostRevision.MODE_APPROVED, user,
                                            change_summary="Review approved")
            db.session.commit()
        except CmsError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to promote review of post %s: %s", post.id, e)
            raise

        logger.info("Promoted review draft of post %s", post.id)
        PostService._dispatch_status_events(post, post.status)
        return True

    @staticmethod
    def promote_ai_review_to_review(post: Post, user: Any = None) -> bool:
        """
        Move the ai-review layer into the review layer.

        Returns:
            bool: False when there was nothing to promote
        """
        from services.revision_service import RevisionService

        if not has_draft_changes(post, cv.MODE_AI_REVIEW):
            return False

        try:
            for post_module in post.post_modules:
                instance = post_module.module_instance
                if not instance.is_global and instance.ai_review_props:
                    instance.review_props = dict(instance.ai_review_props)
                    instance.ai_review_props = None
                if post_module.ai_review_overrides:
                    post_module.review_overrides = dict(post_module.ai_review_overrides)
                post_module.ai_review_overrides = None
                if post_module.ai_review_added:
                    post_module.review_added = True
                    post_module.ai_review_added = False
                if post_module.ai_review_deleted:
                    post_module.review_deleted = True
                    post_module.ai_review_deleted = False
            db.session.flush()

            ai_draft = dict(post.ai_review_draft or {})
            snapshot = ReviewService.refresh_draft_snapshot(
                post, cv.MODE_REVIEW, getattr(user, 'email', None) or ai_draft.get('savedBy')
            )
            for key, value in ai_draft.items():
                if key not in ('modules', 'savedAt', 'savedBy'):
                    snapshot[key] = value
            post.review_draft = dict(snapshot)
            post.ai_review_draft = None

            RevisionService.record_revision(post, PostRevision.MODE_REVIEW, user,
                                            change_summary="AI review promoted to review")
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to promote AI review of post %s: %s", post.id, e)
            raise

        logger.info("Promoted AI review draft of post %s to review", post.id)
        return True

    @staticmethod
    def reject_draft(post: Post, mode: str, user: Any = None) -> bool:
        """
        Discard a draft layer.

        A revision of the discarded state is recorded first. Rows added in
        the layer are removed (with their local instances); the layer's
        props, overrides and deleted flags are cleared.

        Args:
            post: Post
            mode: review or ai-review
            user: Acting user

        Returns:
            bool: False when there was nothing to discard
        """
        from services.post_module_service import PostModuleService
        from services.revision_service import RevisionService

        mode = cv.normalize_mode(mode)
        if not cv.is_draft_mode(mode):
            raise CmsError("Only review and ai-review drafts can be rejected", status_code=400)
        if not has_draft_changes(post, mode):
            return False

        props_col = cv.props_column(mode)
        overrides_col = cv.overrides_column(mode)
        added = cv.added_flag(mode)
        deleted = cv.deleted_flag(mode)

        try:
            RevisionService.record_revision(post, mode, user, change_summary=f"Rejected {mode} draft")
            for post_module in list(post.post_modules):
                if getattr(post_module, added):
                    PostModuleService._remove(post, post_module)
                    continue
                setattr(post_module, overrides_col, None)
                setattr(post_module, deleted, False)
                instance = post_module.module_instance
                if not instance.is_global:
                    setattr(instance, props_col, None)
            setattr(post, cv.draft_column(mode), None)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to reject %s draft of post %s: %s", mode, post.id, e)
            raise

        logger.info("Rejected %s draft of post %s", mode, post.id)
        return True
