"""
URL routing models: per post type/locale patterns and redirects.
"""

from typing import Any, Dict, Optional

from extensions import db
from models.base import BaseModel


class UrlPattern(BaseModel):
    """
    Path pattern for a post type in a locale.

    Patterns use the tokens {locale}, {slug}, {path}, {yyyy}, {mm} and {dd}.
    The default pattern of a (post type, locale) pair builds canonical URLs.
    """
    __tablename__ = 'url_patterns'
    __table_args__ = (
        db.Index('ix_url_patterns_type_locale', 'post_type', 'locale'),
    )

    id = db.Column(db.Integer, primary_key=True)
    post_type = db.Column(db.String(50), nullable=False)
    locale = db.Column(db.String(10), nullable=False)
    pattern = db.Column(db.String(255), nullable=False)
    is_default = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'post_type': self.post_type,
            'locale': self.locale,
            'pattern': self.pattern,
            'is_default': self.is_default,
        }

    def __repr__(self) -> str:
        return f'<UrlPattern {self.post_type}:{self.locale} {self.pattern}>'


class UrlRedirect(BaseModel):
    """Redirect from an old path to a new path (301 by default)."""
    __tablename__ = 'url_redirects'

    VALID_STATUSES = [301, 302, 307, 308]

    id = db.Column(db.Integer, primary_key=True)
    from_path = db.Column(db.String(500), nullable=False, unique=True, index=True)
    to_path = db.Column(db.String(500), nullable=False)
    http_status = db.Column(db.Integer, nullable=False, default=301)
    locale = db.Column(db.String(10), nullable=True)
    post_id = db.Column(db.Integer, db.ForeignKey('posts.id', ondelete='SET NULL'), nullable=True)

    def __init__(self, from_path: str, to_path: str, http_status: int = 301,
                 locale: Optional[str] = None, post_id: Optional[int] = None):
        if http_status not in self.VALID_STATUSES:
            raise ValueError(f"Invalid redirect status: {http_status}")
        if from_path == to_path:
            raise ValueError("Redirect source and target are identical")
        self.from_path = from_path
        self.to_path = to_path
        self.http_status = http_status
        self.locale = locale
        self.post_id = post_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'from_path': self.from_path,
            'to_path': self.to_path,
            'http_status': self.http_status,
            'locale': self.locale,
            'post_id': self.post_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f'<UrlRedirect {self.from_path} -> {self.to_path} ({self.http_status})>'
