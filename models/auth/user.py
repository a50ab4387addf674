"""
User model for CMS editors and administrators.
"""

from typing import Any, Dict, Optional

from werkzeug.security import generate_password_hash, check_password_hash

from extensions import db
from models.base import BaseModel, utcnow


class User(BaseModel):
    """User model with authentication and a single CMS role."""
    __tablename__ = 'users'

    # Role constants
    ROLE_ADMIN = 'admin'
    ROLE_EDITOR_ADMIN = 'editor_admin'
    ROLE_EDITOR = 'editor'
    ROLE_TRANSLATOR = 'translator'
    VALID_ROLES = [ROLE_ADMIN, ROLE_EDITOR_ADMIN, ROLE_EDITOR, ROLE_TRANSLATOR]

    # Core fields
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(120))

    # Role and status
    role = db.Column(db.String(20), nullable=False, default=ROLE_EDITOR)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Activity tracking
    last_login = db.Column(db.DateTime(timezone=True))
    login_count = db.Column(db.Integer, default=0)

    def __init__(self, email: str, password: Optional[str] = None, role: str = ROLE_EDITOR,
                 full_name: Optional[str] = None, is_active: bool = True):
        if role not in self.VALID_ROLES:
            raise ValueError(f"Invalid role: {role}. Must be one of {', '.join(self.VALID_ROLES)}")
        self.email = email.strip().lower()
        self.role = role
        self.full_name = full_name
        self.is_active = is_active
        self.login_count = 0
        if password:
            self.set_password(password)

    def set_password(self, password: str) -> None:
        """Set password hash."""
        if len(password) < 8:
            raise ValueError("Password must be at least 8 characters")
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Verify password."""
        return bool(self.password_hash) and check_password_hash(self.password_hash, password)

    def update_last_login(self) -> None:
        """Record a successful login."""
        self.last_login = utcnow()
        self.login_count = (self.login_count or 0) + 1
        db.session.commit()

    @property
    def is_admin(self) -> bool:
        return self.role == self.ROLE_ADMIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
            'is_active': self.is_active,
            'last_login': self.last_login.isoformat() if self.last_login else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f'<User {self.email} ({self.role})>'
