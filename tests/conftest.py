"""
Test fixtures for the CMS.

This module provides the pytest fixtures used across the test suite:

- Application configured for testing with an in-memory SQLite database
- Users for every role, created through the auth service
- JWT authorization headers per role for API tests
- A factory for posts created through the post service

The fixtures are composable, so tests request only the dependencies they
need while each test runs against a fresh database.
"""

from typing import Any, Callable, Dict

import pytest
from flask import Flask
from flask.testing import FlaskClient

from core.factory import create_app
from extensions import db
from models.auth.user import User
from models.content.post import Post
from services.auth_service import AuthService


@pytest.fixture
def app() -> Flask:
    """
    Create test application instance.

    Returns:
        Flask application configured for testing, with the schema created
        inside a pushed application context
    """
    app = create_app('testing')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def runner(app: Flask):
    """Click runner for ``flask`` commands."""
    return app.test_cli_runner()


def _make_user(email: str, role: str) -> User:
    return AuthService.create_user(email, 'Password123!', role=role, full_name=role.title())


@pytest.fixture
def admin_user(app) -> User:
    return _make_user('admin@example.com', User.ROLE_ADMIN)


@pytest.fixture
def editor_admin_user(app) -> User:
    return _make_user('editor-admin@example.com', User.ROLE_EDITOR_ADMIN)


@pytest.fixture
def editor_user(app) -> User:
    return _make_user('editor@example.com', User.ROLE_EDITOR)


@pytest.fixture
def translator_user(app) -> User:
    return _make_user('translator@example.com', User.ROLE_TRANSLATOR)


def headers_for(user: User) -> Dict[str, str]:
    """
    Create authentication headers with a bearer token for ``user``.

    Args:
        user: Account to authenticate as

    Returns:
        dict: HTTP headers with Authorization and Content-Type
    """
    return {
        'Authorization': f'Bearer {AuthService.generate_api_token(user)}',
        'Content-Type': 'application/json',
    }


@pytest.fixture
def admin_headers(admin_user) -> Dict[str, str]:
    return headers_for(admin_user)


@pytest.fixture
def editor_headers(editor_user) -> Dict[str, str]:
    return headers_for(editor_user)


@pytest.fixture
def translator_headers(translator_user) -> Dict[str, str]:
    return headers_for(translator_user)


@pytest.fixture
def make_post(admin_user) -> Callable[..., Post]:
    """
    Factory creating posts through PostService.

    Defaults to an English draft page with the page's default modules.
    """
    from services.post_service import PostService

    counter = {'n': 0}

    def factory(**overrides: Any) -> Post:
        counter['n'] += 1
        data = {
            'type': 'page',
            'locale': 'en',
            'title': f"Test Page {counter['n']}",
        }
        data.update(overrides)
        user = data.pop('user', admin_user)
        return PostService.create_post(user, **data)

    return factory
