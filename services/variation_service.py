"""
A/B variation service.

An A/B group is identified by ``ab_group_id``, the id of the group's primary
post. Every post of the group carries an ``ab_variation`` label (``A`` for
the primary). Variations are created for the whole translation family at
once, so each locale has its own copy of every variation.
"""

import copy
import logging
import random
import re
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.analytics.form_submission import FormSubmission
from models.analytics.variation_view import PostVariationView
from models.content.custom_field import PostCustomFieldValue
from models.content.module import ModuleInstance, PostModule
from models.content.post import Post
from core.exceptions import CmsError, ConflictError
from core.utils.string import generate_random_string, slugify
from services import content_versioning as cv
from services.post_types import post_type_registry
from services.webhook_service import EventType, WebhookService

logger = logging.getLogger(__name__)

DEFAULT_VARIATION = 'A'
VARIATION_RE = re.compile(r'^[A-Za-z0-9]{1,10}$')
VARIATION_ROBOTS = {'index': False, 'follow': False}


def _clone_post(source: Post, variation: str, user: Any, translation_of_id: Optional[int]) -> Post:
    """Copy a post with its live modules, custom fields and terms (no commit)."""
    slug = slugify(f"{source.slug}-v-{variation}-{generate_random_string(6)}")
    clone = Post(
        type=source.type,
        locale=source.locale,
        slug=slug,
        title=f"{source.title} (Variation {variation})",
        status=Post.STATUS_DRAFT,
        excerpt=source.excerpt,
        meta_title=source.meta_title,
        meta_description=source.meta_description,
        canonical_url=source.canonical_url,
        robots_json=dict(VARIATION_ROBOTS),
        jsonld_overrides=copy.deepcopy(source.jsonld_overrides),
        parent_id=source.parent_id,
        order_index=source.order_index,
        template_id=source.template_id,
        user_id=getattr(user, 'id', None),
        author_id=getattr(user, 'id', None),
        translation_of_id=translation_of_id,
        ab_group_id=source.ab_group_id,
        ab_variation=variation,
    )
    db.session.add(clone)

    for post_module in cv.visible_modules(list(source.post_modules), cv.MODE_PUBLISH):
        instance = post_module.module_instance
        if not instance.is_global:
            instance = ModuleInstance(type=instance.type, scope=ModuleInstance.SCOPE_POST,
                                      props=copy.deepcopy(instance.props))
            db.session.add(instance)
        clone.post_modules.append(PostModule(
            module_instance=instance,
            order_index=post_module.order_index,
            overrides=copy.deepcopy(post_module.overrides),
            locked=post_module.locked,
            admin_label=post_module.admin_label,
        ))

    for value in source.custom_field_values:
        clone.custom_field_values.append(
            PostCustomFieldValue(field_slug=value.field_slug, value=copy.deepcopy(value.value))
        )
    clone.terms = list(source.terms)
    return clone


class VariationService:
    """
    Provides methods to create, remove, promote and measure A/B variations.
    """

    @staticmethod
    def group_members(ab_group_id: int, locale: Optional[str] = None) -> List[Post]:
        query = Post.active().filter(Post.ab_group_id == ab_group_id)
        if locale:
            query = query.filter(Post.locale == locale)
        return query.order_by(Post.ab_variation.asc(), Post.id.asc()).all()

    @staticmethod
    def create_variation(post: Post, variation: str, user: Any = None) -> Post:
        """
        Create variation ``variation`` of a post for its whole translation family.

        Args:
            post: Any member of the family
            variation: Variation label such as ``B``
            user: Acting user

        Returns:
            Post: The new variation in ``post``'s locale

        Raises:
            CmsError: 400 for invalid labels or post types without A/B testing
            ConflictError: 409 if the variation exists for the locale
        """
        variation = (variation or '').strip()
        if not VARIATION_RE.match(variation):
            raise CmsError("Variation must be 1-10 letters or digits", status_code=400)
        config = post_type_registry.get(post.type)
        if config is not None and not config.ab_testing_enabled:
            raise CmsError(f"A/B testing is disabled for {post.type} posts", status_code=400)

        original = post.translation_of if post.translation_of_id else post
        if original.deleted_at is not None:
            raise CmsError("Restore the original post from the trash before creating variations",
                           status_code=400, meta={'original_id': original.id})
        family = original.family()
        ab_group_id = original.ab_group_id or original.id

        existing = Post.active().filter_by(ab_group_id=ab_group_id, locale=post.locale,
                                           ab_variation=variation).first()
        if existing is not None:
            raise ConflictError(f"Variation {variation} already exists for this post and locale",
                                meta={'post_id': existing.id})

        try:
            for member in family:
                member.ab_group_id = ab_group_id
                if not member.ab_variation:
                    member.ab_variation = DEFAULT_VARIATION

            result = None
            new_original = None
            for member in sorted(family, key=lambda m: m.translation_of_id is not None):
                clone = _clone_post(member, variation, user,
                                    None if member.translation_of_id is None else new_original.id)
                db.session.flush()
                if member.translation_of_id is None:
                    new_original = clone
                if member.id == post.id:
                    result = clone
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to create variation %s of post %s: %s", variation, post.id, e)
            raise

        logger.info("Created variation %s of post %s (group %s)", variation, post.id, ab_group_id)
        WebhookService.dispatch(EventType.POST_CREATED, result.to_dict())
        return result

    @staticmethod
    def delete_variation(post: Post, user: Any = None) -> Dict[str, Any]:
        """
        Move a variation to the trash and tidy up its group.

        When at most one post remains the group is dissolved. When the
        primary post is deleted, the group is re-keyed to a new primary.

        Returns:
            Dict[str, Any]: ``{"remaining_post_id": ..., "group_ended": bool}``

        Raises:
            CmsError: 400 if the post is not part of an A/B group
        """
        ab_group_id = post.ab_group_id
        if not ab_group_id:
            raise CmsError("This post is not part of an A/B test", status_code=400)

        result: Dict[str, Any] = {'remaining_post_id': None, 'group_ended': False}
        try:
            post.soft_delete(commit=False)
            db.session.flush()
            remaining = VariationService.group_members(ab_group_id)

            if len(remaining) <= 1:
                for last in remaining:
                    last.ab_group_id = None
                    last.ab_variation = None
                    result['remaining_post_id'] = last.id
                result['group_ended'] = True
            elif post.id == ab_group_id:
                primary = sorted(remaining, key=lambda p: (p.translation_of_id is not None, p.id))[0]
                Post.query.filter(Post.ab_group_id == ab_group_id).update(
                    {'ab_group_id': primary.id}, synchronize_session='fetch'
                )
                result['remaining_post_id'] = primary.id
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to delete variation %s: %s", post.id, e)
            raise

        logger.info("Deleted variation %s of group %s", post.id, ab_group_id)
        WebhookService.dispatch(EventType.POST_DELETED, post.to_dict())
        return result

    @staticmethod
    def _main_post_for(winner: Post) -> Post:
        leader = Post.get_or_404(winner.ab_group_id, "A/B group primary post not found")
        if leader.locale == winner.locale:
            return leader
        translation = Post.query.filter_by(translation_of_id=leader.id, locale=winner.locale).first()
        return translation or leader

    @staticmethod
    def promote_variation(winner: Post, user: Any = None) -> Post:
        """
        End an A/B test with ``winner`` as the live version.

        The winner's content fields, modules, custom fields and terms move to
        the main post of its locale. The other variations are moved to the
        trash and the A/B fields of the remaining family are cleared.

        Returns:
            Post: The main post

        Raises:
            CmsError: 400 if the post is not part of an A/B group
        """
        if not winner.ab_group_id:
            raise CmsError("This post is not part of an A/B test group", status_code=400)
        ab_group_id = winner.ab_group_id
        main = VariationService._main_post_for(winner)

        try:
            if winner.id != main.id:
                for field in Post.CONTENT_FIELDS:
                    if field != 'canonical_url':
                        setattr(main, field, copy.deepcopy(getattr(winner, field)))
                main.robots_json = None if winner.robots_json == VARIATION_ROBOTS else winner.robots_json
                main.title = re.sub(r' \(Variation [A-Za-z0-9]+\)$', '', winner.title)

                for post_module in list(main.post_modules):
                    instance = post_module.module_instance
                    main.post_modules.remove(post_module)
                    if instance is not None and not instance.is_global:
                        db.session.delete(instance)
                for post_module in list(winner.post_modules):
                    main.post_modules.append(post_module)

                main.custom_field_values = []
                db.session.flush()
                for value in list(winner.custom_field_values):
                    main.custom_field_values.append(
                        PostCustomFieldValue(field_slug=value.field_slug, value=copy.deepcopy(value.value))
                    )
                main.terms = list(winner.terms)

            keep = {member.id for member in main.family(include_deleted=True)}
            for member in Post.query.filter(Post.ab_group_id == ab_group_id).all():
                if member.id not in keep and not member.is_deleted:
                    member.soft_delete(commit=False)
                member.ab_group_id = None
                member.ab_variation = None
            for member in main.family():
                member.ab_group_id = None
                member.ab_variation = None
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to promote variation %s: %s", winner.id, e)
            raise

        logger.info("Promoted variation %s into post %s", winner.id, main.id)
        WebhookService.dispatch(EventType.POST_UPDATED, main.to_dict())
        return main

    @staticmethod
    def ab_stats(post: Post) -> Dict[str, Dict[str, Any]]:
        """
        Views, submissions and conversion rate per variation of a post's group.

        Returns:
            Dict[str, Dict[str, Any]]: ``{label: {"views", "submissions", "conversion_rate"}}``
        """
        ab_group_id = post.ab_group_id or post.id

        labels = []
        config = post_type_registry.get(post.type)
        if config is not None:
            labels.extend(config.variation_values())
        labels.extend(
            row[0] for row in db.session.query(Post.ab_variation)
            .filter(Post.ab_group_id == ab_group_id, Post.ab_variation.isnot(None)).distinct()
        )
        labels.append(DEFAULT_VARIATION)

        stats: Dict[str, Dict[str, Any]] = {}
        for label in labels:
            stats.setdefault(label, {'views': 0, 'submissions': 0, 'conversion_rate': 0.0})

        views = db.session.query(PostVariationView.ab_variation, func.count(PostVariationView.id)) \
            .filter(PostVariationView.ab_group_id == ab_group_id) \
            .group_by(PostVariationView.ab_variation).all()
        submissions = db.session.query(FormSubmission.ab_variation, func.count(FormSubmission.id)) \
            .filter(FormSubmission.ab_group_id == ab_group_id) \
            .group_by(FormSubmission.ab_variation).all()

        for label, count in views:
            stats.setdefault(label or DEFAULT_VARIATION,
                             {'views': 0, 'submissions': 0, 'conversion_rate': 0.0})['views'] += count
        for label, count in submissions:
            stats.setdefault(label or DEFAULT_VARIATION,
                             {'views': 0, 'submissions': 0, 'conversion_rate': 0.0})['submissions'] += count

        for entry in stats.values():
            if entry['views'] > 0:
                entry['conversion_rate'] = entry['submissions'] / entry['views'] * 100
        return stats

    @staticmethod
    def choose_variation(posts: List[Post], post_type: Optional[str] = None,
                         rng: Optional[random.Random] = None) -> Optional[Post]:
        """
        Pick one post of an A/B group using the post type's variation weights.

        Variations without a configured weight get the default weight of 50.
        """
        if not posts:
            return None
        if len(posts) == 1:
            return posts[0]
        weights_by_value: Dict[str, int] = {}
        config = post_type_registry.get(post_type or posts[0].type)
        if config is not None:
            weights_by_value = {v.value: v.weight for v in config.variations}
        weights = [max(0, weights_by_value.get(p.ab_variation or DEFAULT_VARIATION, 50)) for p in posts]
        if not any(weights):
            weights = [1] * len(posts)
        return (rng or random).choices(posts, weights=weights, k=1)[0]

    @staticmethod
    def record_view(post: Post) -> Optional[PostVariationView]:
        """Count a public view of a post that belongs to an A/B group."""
        if not post.ab_group_id:
            return None
        view = PostVariationView(post_id=post.id, ab_group_id=post.ab_group_id,
                                 ab_variation=post.ab_variation or DEFAULT_VARIATION)
        try:
            db.session.add(view)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to record view of post %s: %s", post.id, e)
            raise
        return view
