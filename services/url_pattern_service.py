"""
URL pattern and redirect service.

Patterns map post types to public paths per locale. They may use the tokens
``{locale}``, ``{slug}``, ``{path}`` (the slash separated chain of parent
slugs plus the post's own slug), ``{yyyy}``, ``{mm}`` and ``{dd}`` (the
post's creation date). Every token except ``{path}`` is URL-encoded when a
path is built.
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Pattern, Set
from urllib.parse import quote, unquote

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models.content.post import Post
from models.content.template import Template
from models.content.url import UrlPattern, UrlRedirect
from core.exceptions import CmsError, ConflictError
from services.post_types import post_type_registry

logger = logging.getLogger(__name__)

TOKEN_RE = re.compile(r'\{[^}]+\}')
KNOWN_TOKENS = {'locale', 'slug', 'path', 'yyyy', 'mm', 'dd'}

_TOKEN_REGEX = {
    'locale': r'(?P<locale>[a-z]{2}(?:-[a-z]{2})?)',
    'yyyy': r'(?P<yyyy>\d{4})',
    'mm': r'(?P<mm>\d{2})',
    'dd': r'(?P<dd>\d{2})',
    'slug': r'(?P<slug>[^/]+)',
    'path': r'(?P<path>.+?)',
}


def _patterns_changed() -> None:
    from services.public_service import PublicService
    PublicService.clear_cache()


def replace_tokens(pattern: str, values: Dict[str, str]) -> str:
    """
    Substitute ``{token}`` placeholders in a pattern.

    Args:
        pattern: Pattern string
        values: Token values; ``path`` is inserted as-is, others URL-encoded

    Returns:
        str: Path starting with a slash
    """
    out = pattern
    for key, raw in values.items():
        value = raw if key == 'path' else quote(str(raw), safe='')
        out = out.replace('{' + key + '}', value)
    if not out.startswith('/'):
        out = '/' + out
    return out


def pattern_specificity(pattern: str):
    """
    Sort key putting the most specific patterns first.

    More literal segments win, then fewer tokens, then the longer pattern.
    """
    literal_segments = [s for s in pattern.split('/') if s and '{' not in s]
    tokens = TOKEN_RE.findall(pattern)
    return (-len(literal_segments), len(tokens), -len(pattern))


def compile_pattern(pattern: str) -> Pattern:
    """
    Compile a stored pattern into a regular expression with named groups.

    Raises:
        CmsError: 400 when the pattern contains an unknown token
    """
    source = pattern if pattern.startswith('/') else '/' + pattern
    parts = []
    position = 0
    for match in TOKEN_RE.finditer(source):
        parts.append(re.escape(source[position:match.start()]))
        name = match.group(0)[1:-1]
        if name not in _TOKEN_REGEX:
            raise CmsError(f"Unknown token {{{name}}} in URL pattern", status_code=400)
        parts.append(_TOKEN_REGEX[name])
        position = match.end()
    parts.append(re.escape(source[position:]))
    return re.compile('^' + ''.join(parts) + '$', re.IGNORECASE)


def validate_pattern(pattern: str) -> str:
    """
    Check a pattern before storing it.

    Raises:
        CmsError: 400 if the pattern lacks ``{slug}``/``{path}`` or uses unknown tokens
    """
    pattern = (pattern or '').strip()
    if not pattern:
        raise CmsError("Pattern is required", status_code=400)
    if not pattern.startswith('/'):
        pattern = '/' + pattern
    names = {t[1:-1] for t in TOKEN_RE.findall(pattern)}
    unknown = names - KNOWN_TOKENS
    if unknown:
        raise CmsError(f"Unknown tokens in URL pattern: {', '.join(sorted(unknown))}", status_code=400)
    if not names & {'slug', 'path'}:
        raise CmsError("URL pattern must contain {slug} or {path}", status_code=400)
    return pattern


class UrlPatternService:
    """URL patterns, canonical paths and redirects."""

    @staticmethod
    def get_default_pattern(post_type: str, locale: str) -> Optional[UrlPattern]:
        return UrlPattern.query.filter_by(post_type=post_type, locale=locale, is_default=True).first()

    @staticmethod
    def get_all_patterns() -> List[UrlPattern]:
        """Every stored pattern ordered from most to least specific."""
        return sorted(UrlPattern.query.all(), key=lambda p: pattern_specificity(p.pattern))

    @staticmethod
    def match_path(path: str) -> Optional[Dict[str, Any]]:
        """
        Match an incoming path against the stored patterns.

        Args:
            path: Request path such as ``/es/blog/hola``

        Returns:
            Optional dict with ``post_type``, ``locale``, ``slug``,
            ``full_path`` and ``uses_path``; None when nothing matches
        """
        if not path.startswith('/'):
            path = '/' + path
        if len(path) > 1:
            path = path.rstrip('/')

        for pattern in UrlPatternService.get_all_patterns():
            match = compile_pattern(pattern.pattern).match(path)
            if not match:
                continue
            groups = match.groupdict()
            path_group = groups.get('path')
            slug = groups.get('slug')
            if not slug and path_group:
                parts = [p for p in path_group.split('/') if p]
                slug = parts[-1] if parts else None
            if slug:
                return {
                    'post_type': pattern.post_type,
                    'locale': (groups.get('locale') or pattern.locale).lower(),
                    'slug': unquote(slug),
                    'full_path': path_group,
                    'uses_path': bool(path_group),
                }
        return None

    @staticmethod
    def default_pattern_for(post_type: str, locale: str, default_locale: str) -> str:
        """Pattern used when a post type has none defined for ``locale``."""
        config = post_type_registry.get(post_type)
        if config is not None:
            defined = config.pattern_for_locale(locale)
            if defined:
                return defined
        segment = '{path}' if config is not None and config.hierarchy_enabled else '{slug}'
        if locale == default_locale:
            return f'/{post_type}/{segment}'
        return f'/{{locale}}/{post_type}/{segment}'

    @staticmethod
    def ensure_defaults_for_post_type(post_type: str, locales: Optional[Iterable[str]] = None,
                                      commit: bool = True) -> List[UrlPattern]:
        """
        Create default patterns for the locales of a post type that have none.

        Args:
            post_type: Post type
            locales: Locales to cover (defaults to every supported locale)
            commit: Whether to commit the new rows

        Returns:
            List[UrlPattern]: Patterns created
        """
        from services.locale_service import LocaleService

        locales = list(locales) if locales is not None else LocaleService.get_supported_locales()
        existing = {p.locale for p in UrlPattern.query.filter_by(post_type=post_type).all()}
        missing = [loc for loc in locales if loc not in existing]
        if not missing:
            return []

        default_locale = LocaleService.get_default_locale()
        created = []
        for locale in missing:
            pattern = UrlPattern(
                post_type=post_type,
                locale=locale,
                pattern=UrlPatternService.default_pattern_for(post_type, locale, default_locale),
                is_default=True,
            )
            db.session.add(pattern)
            created.append(pattern)

        try:
            if commit:
                db.session.commit()
            else:
                db.session.flush()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to create URL patterns for %s: %s", post_type, e)
            raise
        logger.info("Created %d default URL patterns for post type %s", len(created), post_type)
        _patterns_changed()
        return created

    @staticmethod
    def known_post_types() -> List[str]:
        """Registered post types plus types found on posts and templates."""
        types: Set[str] = set(post_type_registry.types())
        types.update(row[0] for row in db.session.query(Post.type).distinct().all())
        types.update(row[0] for row in db.session.query(Template.post_type).distinct().all())
        return sorted(types)

    @staticmethod
    def ensure_locale_for_all_post_types(locale: str) -> int:
        """Create default patterns for ``locale`` across every known post type."""
        created = 0
        for post_type in UrlPatternService.known_post_types():
            created += len(UrlPatternService.ensure_defaults_for_post_type(post_type, [locale]))
        return created

    @staticmethod
    def parent_path(post: Post) -> str:
        """
        Slash separated slugs of a post's ancestors, root first.

        Only ancestors with the post's type and locale are included; the walk
        stops on a cycle.
        """
        chain: List[str] = []
        seen = {post.id}
        parent_id = post.parent_id
        while parent_id is not None and parent_id not in seen:
            seen.add(parent_id)
            parent = db.session.get(Post, parent_id)
            if parent is None or parent.type != post.type or parent.locale != post.locale:
                break
            chain.append(parent.slug)
            parent_id = parent.parent_id
        return '/'.join(reversed(chain))

    @staticmethod
    def build_path_with_pattern(pattern: str, slug: str, locale: str,
                                created_at: Optional[datetime] = None, path: Optional[str] = None) -> str:
        date = created_at or datetime.utcnow()
        return replace_tokens(pattern, {
            'slug': slug,
            'path': path or slug,
            'locale': locale,
            'yyyy': f'{date.year:04d}',
            'mm': f'{date.month:02d}',
            'dd': f'{date.day:02d}',
        })

    @staticmethod
    def build_post_path(post: Post) -> str:
        """
        Public path of a post from its type/locale default pattern.

        Returns:
            str: Path such as ``/blog/hello`` or ``/es/page/about/team``
        """
        default = UrlPatternService.get_default_pattern(post.type, post.locale)
        pattern = default.pattern if default else '/{locale}/posts/{slug}'
        parent = UrlPatternService.parent_path(post)
        full_path = f'{parent}/{post.slug}' if parent else post.slug
        return UrlPatternService.build_path_with_pattern(
            pattern, post.slug, post.locale, post.created_at, full_path
        )

    # Pattern CRUD

    @staticmethod
    def list_patterns(post_type: Optional[str] = None, locale: Optional[str] = None) -> List[UrlPattern]:
        query = UrlPattern.query
        if post_type:
            query = query.filter_by(post_type=post_type)
        if locale:
            query = query.filter_by(locale=locale)
        return query.order_by(UrlPattern.post_type, UrlPattern.locale).all()

    @staticmethod
    def create_pattern(post_type: str, locale: str, pattern: str, is_default: bool = True) -> UrlPattern:
        pattern = validate_pattern(pattern)
        try:
            if is_default:
                UrlPattern.query.filter_by(post_type=post_type, locale=locale).update({'is_default': False})
            record = UrlPattern(post_type=post_type, locale=locale, pattern=pattern, is_default=is_default)
            db.session.add(record)
            db.session.commit()
            _patterns_changed()
            return record
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to create URL pattern: %s", e)
            raise

    @staticmethod
    def update_pattern(pattern_id: int, pattern: str, is_default: Optional[bool] = None) -> UrlPattern:
        record = UrlPattern.get_or_404(pattern_id, "URL pattern not found")
        record.pattern = validate_pattern(pattern)
        try:
            if is_default:
                UrlPattern.query.filter(
                    UrlPattern.post_type == record.post_type,
                    UrlPattern.locale == record.locale,
                    UrlPattern.id != record.id
                ).update({'is_default': False})
                record.is_default = True
            elif is_default is False:
                record.is_default = False
            db.session.commit()
            _patterns_changed()
            return record
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to update URL pattern %s: %s", pattern_id, e)
            raise

    @staticmethod
    def delete_pattern(pattern_id: int) -> None:
        UrlPattern.get_or_404(pattern_id, "URL pattern not found").delete()
        _patterns_changed()

    # Redirects

    @staticmethod
    def find_redirect(path: str) -> Optional[UrlRedirect]:
        return UrlRedirect.query.filter_by(from_path=path).first()

    @staticmethod
    def list_redirects(locale: Optional[str] = None) -> List[UrlRedirect]:
        query = UrlRedirect.query
        if locale:
            query = query.filter_by(locale=locale)
        return query.order_by(UrlRedirect.created_at.desc()).all()

    @staticmethod
    def create_redirect(from_path: str, to_path: str, http_status: int = 301,
                        locale: Optional[str] = None, post_id: Optional[int] = None,
                        commit: bool = True) -> UrlRedirect:
        """
        Add a redirect.

        Raises:
            CmsError: 400 for invalid status or identical paths
            ConflictError: If a redirect from ``from_path`` exists
        """
        if UrlRedirect.query.filter_by(from_path=from_path).first() is not None:
            raise ConflictError(f"A redirect from {from_path} already exists")
        try:
            redirect = UrlRedirect(from_path=from_path, to_path=to_path, http_status=http_status,
                                   locale=locale, post_id=post_id)
        except ValueError as e:
            raise CmsError(str(e), status_code=400)
        try:
            db.session.add(redirect)
            if commit:
                db.session.commit()
            else:
                db.session.flush()
            return redirect
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"A redirect from {from_path} already exists")

    @staticmethod
    def update_redirect(redirect_id: int, **changes) -> UrlRedirect:
        redirect = UrlRedirect.get_or_404(redirect_id, "Redirect not found")
        status = changes.get('http_status')
        if status is not None and status not in UrlRedirect.VALID_STATUSES:
            raise CmsError(f"Invalid redirect status: {status}", status_code=400)
        redirect.update(**{k: v for k, v in changes.items() if v is not None})
        return redirect

    @staticmethod
    def delete_redirect(redirect_id: int) -> None:
        UrlRedirect.get_or_404(redirect_id, "Redirect not found").delete()

    @staticmethod
    def add_slug_change_redirect(post: Post, old_path: str) -> Optional[UrlRedirect]:
        """
        Insert a 301 from a post's previous path to its current one.

        Redirects away from the new path are removed so a slug that returns
        to an earlier value stays reachable. Failures are logged and ignored.
        """
        new_path = UrlPatternService.build_post_path(post)
        if old_path == new_path:
            return None
        for stale in UrlRedirect.query.filter_by(from_path=new_path).all():
            logger.info("Removing redirect %s -> %s shadowing post %s", stale.from_path, stale.to_path, post.id)
            db.session.delete(stale)
        existing = UrlRedirect.query.filter_by(from_path=old_path).first()
        if existing is not None:
            existing.to_path = new_path
            return existing
        try:
            redirect = UrlRedirect(from_path=old_path, to_path=new_path, http_status=301,
                                   locale=post.locale, post_id=post.id)
            db.session.add(redirect)
            return redirect
        except ValueError as e:
            logger.warning("Could not add redirect %s -> %s: %s", old_path, new_path, e)
            return None
