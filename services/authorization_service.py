"""
Role based authorization for the CMS.

Every user carries one role. Roles map to permission keys such as
``posts.publish`` or ``menus.edit``; the admin role holds every permission.
Routes declare the permission they need with ``permission_required``.
"""

import functools
import logging
from typing import Any, Callable, Dict, FrozenSet, List, Optional, TypeVar, cast

from flask import g, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from extensions import db
from models.auth.user import User
from core.exceptions import CmsError, ForbiddenError

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable)

ALL_PERMISSIONS: FrozenSet[str] = frozenset([
    'posts.create',
    'posts.edit',
    'posts.publish',
    'posts.archive',
    'posts.delete',
    'posts.translate',
    'posts.revisions.manage',
    'posts.export',
    'posts.review.save',
    'posts.review.approve',
    'posts.ai-review.save',
    'posts.ai-review.approve',
    'menus.view', 'menus.edit', 'menus.delete',
    'globals.view', 'globals.edit', 'globals.delete',
    'taxonomies.view', 'taxonomies.edit', 'taxonomies.delete',
    'templates.view', 'templates.edit', 'templates.delete',
    'agents.view', 'agents.run',
    'webhooks.view', 'webhooks.edit', 'webhooks.delete',
    'forms.view', 'forms.submissions.export',
    'urls.view', 'urls.edit',
    'users.manage',
    'settings.manage',
])

ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    User.ROLE_ADMIN: ALL_PERMISSIONS,
    User.ROLE_EDITOR_ADMIN: frozenset([
        'posts.create', 'posts.edit', 'posts.publish', 'posts.archive', 'posts.delete',
        'posts.translate', 'posts.revisions.manage', 'posts.export',
        'posts.review.save', 'posts.review.approve',
        'posts.ai-review.save', 'posts.ai-review.approve',
        'menus.view', 'menus.edit', 'menus.delete',
        'globals.view', 'globals.edit', 'globals.delete',
        'taxonomies.view', 'taxonomies.edit', 'taxonomies.delete',
        'templates.view', 'templates.edit', 'templates.delete',
        'agents.view', 'agents.run',
        'webhooks.view',
        'forms.view', 'forms.submissions.export',
        'urls.view', 'urls.edit',
    ]),
    User.ROLE_EDITOR: frozenset([
        'posts.create', 'posts.edit', 'posts.translate', 'posts.revisions.manage', 'posts.export',
        'posts.review.save', 'posts.ai-review.save',
        'menus.view', 'menus.edit',
        'globals.view', 'globals.edit',
        'taxonomies.view',
        'templates.view',
        'agents.view', 'agents.run',
        'forms.view',
        'urls.view',
    ]),
    User.ROLE_TRANSLATOR: frozenset([
        'posts.edit', 'posts.translate', 'posts.review.save',
        'menus.view', 'globals.view', 'taxonomies.view', 'templates.view',
        'urls.view',
    ]),
}

BULK_ACTIONS = ['publish', 'draft', 'archive', 'delete']


def _role_of(user_or_role: Any) -> Optional[str]:
    if user_or_role is None:
        return None
    if isinstance(user_or_role, str):
        return user_or_role
    return getattr(user_or_role, 'role', None)


def permissions_for(user_or_role: Any) -> FrozenSet[str]:
    return ROLE_PERMISSIONS.get(_role_of(user_or_role), frozenset())


def has_permission(user_or_role: Any, permission: str) -> bool:
    """
    Check whether a user (or role name) holds a permission.

    Args:
        user_or_role: User instance or role name
        permission: Permission key

    Returns:
        bool: True if granted
    """
    return permission in permissions_for(user_or_role)


def require_permission(user_or_role: Any, permission: str) -> None:
    """
    Raises:
        ForbiddenError: If the permission is missing
    """
    if not has_permission(user_or_role, permission):
        raise ForbiddenError(f"Missing permission: {permission}", meta={'permission': permission})


def can_update_status(user_or_role: Any, next_status: Optional[str]) -> bool:
    """Moving a post back to draft is always allowed; other statuses need publish rights."""
    if not next_status or next_status == 'draft':
        return True
    if next_status == 'archived':
        return has_permission(user_or_role, 'posts.archive') or has_permission(user_or_role, 'posts.publish')
    return has_permission(user_or_role, 'posts.publish')


def can_bulk_action(user_or_role: Any, action: str) -> bool:
    """Whether the bulk ``action`` is allowed for a user."""
    if action == 'delete':
        return has_permission(user_or_role, 'posts.delete')
    if action == 'publish':
        return has_permission(user_or_role, 'posts.publish')
    if action == 'archive':
        return has_permission(user_or_role, 'posts.archive')
    if action == 'draft':
        return has_permission(user_or_role, 'posts.edit') or has_permission(user_or_role, 'posts.create')
    return False


def permission_for_save_mode(mode: str) -> str:
    """Permission needed to save content in a given mode."""
    return {
        'publish': 'posts.edit',
        'review': 'posts.review.save',
        'ai-review': 'posts.ai-review.save',
    }.get(mode, 'posts.edit')


def load_current_user() -> User:
    """
    Load the authenticated user from the JWT and store it on ``g``.

    Raises:
        ForbiddenError: If the account no longer exists or is disabled
    """
    verify_jwt_in_request()
    identity = get_jwt_identity()
    try:
        user_id = int(identity)
    except (TypeError, ValueError):
        raise CmsError("Invalid token identity", status_code=401, code='unauthorized')
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise ForbiddenError("Account is disabled or no longer exists")
    g.user = user
    g.user_id = user.id
    return user


def login_required(f: F) -> F:
    """
    Decorator requiring a valid JWT; the user is available as ``g.user``.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        load_current_user()
        return f(*args, **kwargs)
    return cast(F, decorated)


def permission_required(*permissions: str) -> Callable[[F], F]:
    """
    Decorator restricting a route to users holding every listed permission.

    Args:
        *permissions: Permission keys

    Returns:
        Decorator for route handlers
    """
    def decorator(f: F) -> F:
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = load_current_user()
            missing = [p for p in permissions if not has_permission(user, p)]
            if missing:
                logger.warning("Permission denied for user %s on %s %s (missing %s)",
                               user.id, request.method, request.path, ', '.join(missing))
                raise ForbiddenError("You do not have permission to perform this action",
                                     meta={'missing': missing})
            return f(*args, **kwargs)
        return cast(F, decorated)
    return decorator


def role_summary() -> List[Dict[str, Any]]:
    """Roles with their sorted permission keys."""
    return [
        {'role': role, 'permissions': sorted(perms)}
        for role, perms in ROLE_PERMISSIONS.items()
    ]
