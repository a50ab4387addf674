"""
Locale service.

Supported locales come from configuration (``CMS_DEFAULT_LOCALE`` and
``CMS_SUPPORTED_LOCALES``) until locales are stored in the database; from then
on the ``locales`` table is authoritative.
"""

import logging
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.content.locale import Locale
from core.exceptions import CmsError, ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class LocaleService:
    """Supported locale lookup and locale management."""

    @staticmethod
    def _has_db_locales() -> bool:
        return db.session.query(Locale.query.exists()).scalar()

    @staticmethod
    def get_default_locale() -> str:
        """The default locale code."""
        if LocaleService._has_db_locales():
            default = Locale.query.filter_by(is_default=True).first()
            if default is not None:
                return default.code
        return str(current_app.config.get('CMS_DEFAULT_LOCALE', 'en')).lower()

    @staticmethod
    def get_supported_locales() -> List[str]:
        """Enabled locale codes, default locale first."""
        default = LocaleService.get_default_locale()
        if LocaleService._has_db_locales():
            codes = [loc.code for loc in Locale.query.filter_by(is_enabled=True).order_by(Locale.code).all()]
        else:
            codes = list(current_app.config.get('CMS_SUPPORTED_LOCALES') or [default])
        if default not in codes:
            codes.insert(0, default)
        return [default] + [code for code in codes if code != default]

    @staticmethod
    def is_supported(locale: Optional[str]) -> bool:
        return bool(locale) and str(locale).lower() in LocaleService.get_supported_locales()

    @staticmethod
    def require_supported(locale: Optional[str]) -> str:
        """
        Normalize a locale code and check it is enabled.

        Raises:
            CmsError: 400 for unsupported locales
        """
        code = str(locale or '').strip().lower()
        if not LocaleService.is_supported(code):
            raise CmsError(f"Unsupported locale: {locale}", status_code=400,
                           meta={'supported': LocaleService.get_supported_locales()})
        return code

    @staticmethod
    def list_locales() -> List[Locale]:
        """Stored locales; seeds the table from configuration on first use."""
        LocaleService.sync_from_config()
        return Locale.query.order_by(Locale.is_default.desc(), Locale.code).all()

    @staticmethod
    def sync_from_config() -> None:
        """Create rows for the configured locales when the table is empty."""
        if LocaleService._has_db_locales():
            return
        default = str(current_app.config.get('CMS_DEFAULT_LOCALE', 'en')).lower()
        codes = list(current_app.config.get('CMS_SUPPORTED_LOCALES') or [default])
        if default not in codes:
            codes.insert(0, default)
        try:
            for code in codes:
                db.session.add(Locale(code=code, is_enabled=True, is_default=(code == default)))
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to seed locales: %s", e)
            raise

    @staticmethod
    def create_locale(code: str, name: Optional[str] = None, is_enabled: bool = True,
                      is_default: bool = False) -> Locale:
        """
        Add a locale.

        Raises:
            ConflictError: If the locale already exists
        """
        from services.url_pattern_service import UrlPatternService

        LocaleService.sync_from_config()
        code = code.strip().lower()
        if db.session.get(Locale, code) is not None:
            raise ConflictError(f"Locale {code} already exists")

        try:
            locale = Locale(code=code, name=name, is_enabled=is_enabled or is_default, is_default=False)
            db.session.add(locale)
            if is_default:
                LocaleService._make_default(locale)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to create locale %s: %s", code, e)
            raise

        if locale.is_enabled:
            UrlPatternService.ensure_locale_for_all_post_types(code)
        return locale

    @staticmethod
    def update_locale(code: str, is_enabled: Optional[bool] = None,
                      is_default: Optional[bool] = None, name: Optional[str] = None) -> Locale:
        """
        Enable, disable, rename or promote a locale to default.

        Raises:
            NotFoundError: If the locale does not exist
            CmsError: 400 when disabling or un-defaulting the default locale
        """
        from services.url_pattern_service import UrlPatternService

        LocaleService.sync_from_config()
        locale = db.session.get(Locale, code.strip().lower())
        if locale is None:
            raise NotFoundError(f"Locale {code} not found")

        if is_enabled is False and locale.is_default:
            raise CmsError("The default locale cannot be disabled", status_code=400)
        if is_default is False and locale.is_default:
            raise CmsError("Choose another default locale instead", status_code=400)

        try:
            if name is not None:
                locale.name = name
            if is_enabled is not None:
                locale.is_enabled = is_enabled
            if is_default:
                locale.is_enabled = True
                LocaleService._make_default(locale)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to update locale %s: %s", code, e)
            raise

        if locale.is_enabled:
            UrlPatternService.ensure_locale_for_all_post_types(locale.code)
        return locale

    @staticmethod
    def delete_locale(code: str) -> None:
        """
        Remove a locale.

        Raises:
            NotFoundError: If the locale does not exist
            CmsError: 400 for the default locale
        """
        LocaleService.sync_from_config()
        locale = db.session.get(Locale, code.strip().lower())
        if locale is None:
            raise NotFoundError(f"Locale {code} not found")
        if locale.is_default:
            raise CmsError("The default locale cannot be deleted", status_code=400)
        locale.delete()

    @staticmethod
    def _make_default(locale: Locale) -> None:
        Locale.query.filter(Locale.code != locale.code).update({'is_default': False})
        locale.is_default = True
