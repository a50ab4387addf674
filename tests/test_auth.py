"""
Tests for authentication, user management, locales and the module registry API.
"""

import pytest

from core.exceptions import CmsError, ConflictError
from models.auth.user import User
from services.auth_service import AuthService
from services.post_module_service import PostModuleService


class TestAuthService:
    """Test suite for AuthService."""

    def test_authenticate(self, editor_user) -> None:
        ok, user, message = AuthService.authenticate_user('Editor@Example.com ', 'Password123!')
        assert ok is True
        assert user.id == editor_user.id
        assert message == ''
        assert user.last_login is not None

        ok, user, message = AuthService.authenticate_user('editor@example.com', 'wrong-password')
        assert (ok, user, message) == (False, None, "Invalid email or password")

    def test_disabled_account_cannot_log_in(self, app) -> None:
        AuthService.create_user('off@example.com', 'Password123!', role=User.ROLE_EDITOR, is_active=False)
        ok, user, message = AuthService.authenticate_user('off@example.com', 'Password123!')
        assert ok is False
        assert message == "Account is disabled"

    def test_create_user_validation(self, editor_user) -> None:
        with pytest.raises(CmsError) as exc:
            AuthService.create_user('not-an-email', 'Password123!')
        assert exc.value.status_code == 400

        with pytest.raises(ConflictError):
            AuthService.create_user('EDITOR@example.com', 'Password123!')

        with pytest.raises(CmsError) as exc:
            AuthService.create_user('new@example.com', 'Password123!', role='owner')
        assert exc.value.status_code == 400

    def test_update_user(self, translator_user) -> None:
        user = AuthService.update_user(translator_user.id, role=User.ROLE_EDITOR, full_name='Lee')
        assert (user.role, user.full_name) == (User.ROLE_EDITOR, 'Lee')

        with pytest.raises(CmsError) as exc:
            AuthService.update_user(translator_user.id, role='owner')
        assert exc.value.status_code == 400


class TestAuthApi:
    """Test suite for the auth endpoints."""

    def test_login(self, client, editor_user) -> None:
        response = client.post('/api/auth/login', json={'email': 'editor@example.com',
                                                        'password': 'Password123!'})
        assert response.status_code == 200
        body = response.get_json()['data']
        assert body['token_type'] == 'Bearer'
        assert body['access_token']
        assert body['user']['email'] == 'editor@example.com'
        assert 'password' not in body['user']

        me = client.get('/api/auth/me', headers={'Authorization': f"Bearer {body['access_token']}"})
        assert me.status_code == 200
        assert me.get_json()['data']['role'] == User.ROLE_EDITOR

    def test_login_failures(self, client, editor_user) -> None:
        response = client.post('/api/auth/login', json={'email': 'editor@example.com',
                                                        'password': 'nope'})
        assert response.status_code == 401
        assert response.get_json()['code'] == 'invalid_credentials'

        response = client.post('/api/auth/login', json={'email': 'editor@example.com'})
        assert response.status_code == 400
        assert 'password' in response.get_json()['meta']['errors']

    def test_missing_token(self, client) -> None:
        response = client.get('/api/auth/me')
        assert response.status_code == 401
        assert response.get_json()['code'] == 'missing_token'

    def test_me_lists_permissions(self, client, translator_headers) -> None:
        data = client.get('/api/auth/me', headers=translator_headers).get_json()['data']
        assert 'posts.translate' in data['permissions']
        assert 'posts.publish' not in data['permissions']
        assert data['permissions'] == sorted(data['permissions'])

    def test_roles(self, client, editor_headers) -> None:
        roles = client.get('/api/auth/roles', headers=editor_headers).get_json()['data']
        by_role = {entry['role']: entry['permissions'] for entry in roles}
        assert set(by_role) == set(User.VALID_ROLES)
        assert 'users.manage' in by_role[User.ROLE_ADMIN]
        assert 'webhooks.edit' not in by_role[User.ROLE_EDITOR_ADMIN]
        assert 'webhooks.view' in by_role[User.ROLE_EDITOR_ADMIN]

    def test_user_management(self, client, admin_headers, editor_headers) -> None:
        response = client.get('/api/auth/users', headers=editor_headers)
        assert response.status_code == 403
        assert response.get_json()['meta']['missing'] == ['users.manage']

        response = client.post('/api/auth/users', headers=admin_headers, json={
            'email': 'writer@example.com', 'password': 'Password123!', 'role': 'translator'})
        assert response.status_code == 201
        created = response.get_json()['data']
        assert created['role'] == 'translator'

        response = client.post('/api/auth/users', headers=admin_headers, json={
            'email': 'writer@example.com', 'password': 'Password123!'})
        assert response.status_code == 409

        response = client.post('/api/auth/users', headers=admin_headers, json={
            'email': 'short@example.com', 'password': 'short'})
        assert response.status_code == 400

        response = client.patch(f"/api/auth/users/{created['id']}", headers=admin_headers,
                                json={'is_active': False})
        assert response.status_code == 200
        assert response.get_json()['data']['is_active'] is False

        emails = [u['email'] for u in client.get('/api/auth/users', headers=admin_headers).get_json()['data']]
        assert emails == sorted(emails)
        assert 'writer@example.com' in emails

    def test_disabled_user_token_rejected(self, client, editor_user, editor_headers) -> None:
        AuthService.update_user(editor_user.id, is_active=False)
        response = client.get('/api/auth/me', headers=editor_headers)
        assert response.status_code == 403


class TestLocalesApi:
    """Test suite for the locale endpoints."""

    def test_list_seeds_from_config(self, client, translator_headers) -> None:
        data = client.get('/api/locales', headers=translator_headers).get_json()['data']
        assert data['default'] == 'en'
        assert data['supported'] == ['en', 'es', 'fr']
        assert [loc['code'] for loc in data['locales']] == ['en', 'es', 'fr']
        assert data['locales'][0]['is_default'] is True

    def test_create_update_delete(self, client, admin_headers, editor_headers) -> None:
        response = client.post('/api/locales', headers=editor_headers, json={'code': 'de'})
        assert response.status_code == 403

        response = client.post('/api/locales', headers=admin_headers, json={'code': 'de', 'name': 'Deutsch'})
        assert response.status_code == 201
        assert response.get_json()['data'] == {'code': 'de', 'name': 'Deutsch',
                                               'is_enabled': True, 'is_default': False}
        assert client.post('/api/locales', headers=admin_headers, json={'code': 'de'}).status_code == 409
        assert client.post('/api/locales', headers=admin_headers, json={'code': 'D E'}).status_code == 400

        supported = client.get('/api/locales', headers=admin_headers).get_json()['data']['supported']
        assert supported == ['en', 'de', 'es', 'fr']

        response = client.patch('/api/locales/en', headers=admin_headers, json={'is_enabled': False})
        assert response.status_code == 400
        assert client.delete('/api/locales/en', headers=admin_headers).status_code == 400
        assert client.delete('/api/locales/xx', headers=admin_headers).status_code == 404

        response = client.patch('/api/locales/de', headers=admin_headers, json={'is_default': True})
        assert response.status_code == 200
        data = client.get('/api/locales', headers=admin_headers).get_json()['data']
        assert data['default'] == 'de'
        assert data['supported'][0] == 'de'

        assert client.delete('/api/locales/en', headers=admin_headers).status_code == 200


class TestModulesApi:
    """Test suite for module and post type definitions and global modules."""

    def test_module_types(self, client, translator_headers) -> None:
        data = client.get('/api/modules/types', headers=translator_headers).get_json()['data']
        assert [m['type'] for m in data] == ['prose', 'hero', 'callout', 'gallery', 'faq', 'form']
        form = data[-1]
        assert form['allowed_scopes'] == ['post']

        response = client.get('/api/modules/types/hero', headers=translator_headers)
        assert response.get_json()['data']['default_props']['title'] == 'Welcome'
        assert client.get('/api/modules/types/carousel', headers=translator_headers).status_code == 404

    def test_post_types(self, client, translator_headers) -> None:
        data = client.get('/api/modules/post-types', headers=translator_headers).get_json()['data']
        by_type = {p['type']: p for p in data}
        assert by_type['blog']['ab_testing']['enabled'] is True
        assert [v['value'] for v in by_type['page']['ab_testing']['variations']] == ['A', 'B']
        assert by_type['documentation']['ab_testing']['enabled'] is False
        assert by_type['profile']['modules_enabled'] is False

        response = client.get('/api/modules/post-types/documentation', headers=translator_headers)
        assert response.get_json()['data']['taxonomies'] == ['categories']
        assert client.get('/api/modules/post-types/recipe', headers=translator_headers).status_code == 404

    def test_globals(self, client, editor_headers, translator_headers, admin_headers) -> None:
        response = client.post('/api/modules/globals', headers=translator_headers,
                               json={'type': 'faq', 'global_slug': 'shared-faq'})
        assert response.status_code == 403

        response = client.post('/api/modules/globals', headers=editor_headers,
                               json={'type': 'faq', 'global_slug': 'shared-faq', 'global_label': 'Shared FAQ'})
        assert response.status_code == 201
        created = response.get_json()['data']
        assert created['scope'] == 'global'
        assert created['props'] == {'title': 'Frequently asked questions', 'items': []}

        response = client.post('/api/modules/globals', headers=editor_headers,
                               json={'type': 'faq', 'global_slug': 'shared-faq'})
        assert response.status_code == 409
        response = client.post('/api/modules/globals', headers=editor_headers,
                               json={'type': 'form', 'global_slug': 'shared-form'})
        assert response.status_code == 400
        response = client.post('/api/modules/globals', headers=editor_headers,
                               json={'type': 'faq', 'global_slug': 'Bad Slug'})
        assert response.status_code == 400

        response = client.patch(f"/api/modules/globals/{created['id']}", headers=editor_headers,
                                json={'props': {'title': 'Questions'}})
        assert response.get_json()['data']['props'] == {'title': 'Questions', 'items': []}

        listed = client.get('/api/modules/globals?search=shared', headers=translator_headers).get_json()['data']
        assert [g['global_slug'] for g in listed] == ['shared-faq']

        response = client.delete(f"/api/modules/globals/{created['id']}", headers=editor_headers)
        assert response.status_code == 403
        response = client.delete(f"/api/modules/globals/{created['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert client.get(f"/api/modules/globals/{created['id']}", headers=admin_headers).status_code == 404

    def test_global_in_use_cannot_be_deleted(self, client, make_post, admin_headers) -> None:
        post = make_post(title='Uses Global')
        placement = PostModuleService.add_module_to_post(post.id, 'faq', scope='global',
                                                         global_slug='footer-faq')

        response = client.delete(f'/api/modules/globals/{placement.module_id}', headers=admin_headers)
        assert response.status_code == 409
        assert response.get_json()['meta'] == {'usage_count': 1}
