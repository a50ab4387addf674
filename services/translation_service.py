"""
Translation Service for the CMS.

A translation family is an original post plus one post per additional
locale, linked through ``translation_of_id``.
"""

import copy
import logging
import time
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.content.module import ModuleInstance, PostModule
from models.content.post import Post
from core.exceptions import CmsError, ConflictError, NotFoundError
from core.utils.string import slugify
from services import content_versioning as cv
from services.locale_service import LocaleService
from services.url_pattern_service import UrlPatternService
from services.webhook_service import EventType, WebhookService

logger = logging.getLogger(__name__)


def _copy_local_modules(source: Post, target: Post) -> int:
    """Clone the live local modules of ``source`` onto ``target``; globals are skipped."""
    copied = 0
    for post_module in cv.visible_modules(list(source.post_modules), cv.MODE_PUBLISH):
        instance = post_module.module_instance
        if instance is None or instance.is_global:
            continue
        clone = ModuleInstance(type=instance.type, scope=ModuleInstance.SCOPE_POST,
                               props=copy.deepcopy(instance.props))
        db.session.add(clone)
        target.post_modules.append(PostModule(
            module_instance=clone,
            order_index=post_module.order_index,
            overrides=copy.deepcopy(post_module.overrides),
            locked=post_module.locked,
            admin_label=post_module.admin_label,
        ))
        copied += 1
    return copied


class TranslationService:
    """
    Provides methods for managing the translations of a post.
    """

    @staticmethod
    def list_family(post: Post) -> List[Dict[str, Any]]:
        """Summary of every member of a post's translation family."""
        return [
            {
                'id': member.id,
                'locale': member.locale,
                'slug': member.slug,
                'title': member.title,
                'status': member.status,
                'is_original': not member.is_translation,
                'path': UrlPatternService.build_post_path(member),
            }
            for member in post.family()
        ]

    @staticmethod
    def get_translation(post: Post, locale: str) -> Optional[Post]:
        for member in post.family():
            if member.locale == locale:
                return member
        return None

    @staticmethod
    def create_translation(post: Post, locale: str, user: Any = None, slug: Optional[str] = None,
                           title: Optional[str] = None, meta_title: Optional[str] = None,
                           meta_description: Optional[str] = None) -> Post:
        """
        Create a draft translation of a post.

        Args:
            post: Any member of the family; the translation links to the original
            locale: Target locale
            user: Acting user
            slug: Slug of the translation (defaults to ``{slug}-{locale}-{timestamp}``)
            title: Title (defaults to the original's title)
            meta_title: Optional SEO title
            meta_description: Optional SEO description

        Returns:
            Post: The new translation

        Raises:
            CmsError: 400 for unsupported locales
            ConflictError: 409 if the family already has a post in ``locale``
        """
        base = post.translation_of if post.is_translation else post
        if not LocaleService.is_supported(locale):
            raise CmsError(f"Unsupported locale: {locale}", status_code=400, meta={'locale': locale})

        existing = TranslationService.get_translation(base, locale)
        if existing is not None:
            raise ConflictError(f"Translation already exists for locale: {locale}",
                                meta={'locale': locale, 'translation_id': existing.id})

        slug = slugify((slug or '').strip()) or f"{base.slug}-{locale}-{int(time.time() * 1000)}"
        if Post.slug_taken(slug, locale):
            raise ConflictError("A post with this slug already exists in this locale",
                                meta={'slug': slug, 'locale': locale})

        try:
            translation = Post(
                type=base.type,
                locale=locale,
                slug=slug,
                title=(title or '').strip() or base.title or f"{base.type} ({locale.upper()})",
                status=Post.STATUS_DRAFT,
                meta_title=meta_title or None,
                meta_description=meta_description or None,
                robots_json=copy.deepcopy(base.robots_json),
                template_id=base.template_id,
                order_index=base.order_index,
                user_id=getattr(user, 'id', None) or base.user_id,
                author_id=base.author_id,
                translation_of_id=base.id,
            )
            db.session.add(translation)
            db.session.flush()
            _copy_local_modules(base, translation)
            UrlPatternService.ensure_defaults_for_post_type(base.type, [locale], commit=False)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to create %s translation of post %s: %s", locale, base.id, e)
            raise

        logger.info("Created %s translation %s of post %s", locale, translation.id, base.id)
        WebhookService.dispatch(EventType.POST_CREATED, translation.to_dict())
        return translation

    @staticmethod
    def delete_translation(post: Post, locale: str) -> Post:
        """
        Move the ``locale`` member of a post's family to the trash.

        Raises:
            CmsError: 400 when ``locale`` is the original's own locale
            NotFoundError: If the family has no post in ``locale``
        """
        if not post.is_translation and post.locale == locale:
            raise CmsError("Cannot delete the original post via translations; delete the post instead",
                           status_code=400, meta={'post_id': post.id, 'locale': locale})

        translation = TranslationService.get_translation(post, locale)
        if translation is None:
            raise NotFoundError(f"Translation not found for locale: {locale}", meta={'locale': locale})
        if not translation.is_translation:
            raise CmsError("Cannot delete the original post via translations; delete the post instead",
                           status_code=400, meta={'post_id': translation.id, 'locale': locale})

        translation.soft_delete()
        logger.info("Deleted %s translation %s", locale, translation.id)
        WebhookService.dispatch(EventType.POST_DELETED, translation.to_dict())
        return translation
