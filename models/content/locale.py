"""
Locale model: languages enabled for content.
"""

from typing import Any, Dict

from extensions import db
from models.base import BaseModel


class Locale(BaseModel):
    """A content locale such as ``en`` or ``pt-br``; exactly one is the default."""
    __tablename__ = 'locales'

    code = db.Column(db.String(10), primary_key=True)
    name = db.Column(db.String(100), nullable=True)
    is_enabled = db.Column(db.Boolean, nullable=False, default=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'name': self.name,
            'is_enabled': self.is_enabled,
            'is_default': self.is_default,
        }

    def __repr__(self) -> str:
        return f'<Locale {self.code}{" (default)" if self.is_default else ""}>'
