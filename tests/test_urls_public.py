"""
Tests for URL patterns, redirects and public path resolution.
"""

import pytest

from core.exceptions import CmsError, NotFoundError
from models.analytics.variation_view import PostVariationView
from models.content.url import UrlRedirect
from services.post_module_service import PostModuleService
from services.post_service import PostService
from services.public_service import PublicService, normalize_path
from services.url_pattern_service import (
    UrlPatternService, pattern_specificity, replace_tokens, validate_pattern
)
from services.variation_service import VariationService


class TestPatterns:
    """Test suite for pattern helpers and pattern CRUD."""

    def test_validate_pattern(self) -> None:
        assert validate_pattern('blog/{slug}') == '/blog/{slug}'
        assert validate_pattern(' /{locale}/docs/{path} ') == '/{locale}/docs/{path}'
        for invalid in ['', '/blog/static', '/{bogus}/{slug}']:
            with pytest.raises(CmsError) as exc_info:
                validate_pattern(invalid)
            assert exc_info.value.status_code == 400

    def test_replace_tokens_encodes_values(self) -> None:
        path = replace_tokens('/{locale}/{path}/{slug}', {'locale': 'es', 'path': 'a/b', 'slug': 'x y'})
        assert path == '/es/a/b/x%20y'

    def test_specificity_prefers_literals(self) -> None:
        patterns = ['/{locale}/{slug}', '/{locale}/blog/{slug}', '/blog/{slug}']
        assert sorted(patterns, key=pattern_specificity) == [
            '/blog/{slug}', '/{locale}/blog/{slug}', '/{locale}/{slug}'
        ]

    def test_defaults_created_per_locale(self, app) -> None:
        created = UrlPatternService.ensure_defaults_for_post_type('blog')

        assert {(p.locale, p.pattern) for p in created} == {
            ('en', '/blog/{slug}'), ('es', '/{locale}/blog/{slug}'), ('fr', '/{locale}/blog/{slug}')
        }
        assert UrlPatternService.ensure_defaults_for_post_type('blog') == []

    def test_match_path(self, app) -> None:
        UrlPatternService.ensure_defaults_for_post_type('blog')
        UrlPatternService.ensure_defaults_for_post_type('page')

        assert UrlPatternService.match_path('/blog/hello/') == {
            'post_type': 'blog', 'locale': 'en', 'slug': 'hello', 'full_path': None, 'uses_path': False
        }
        spanish = UrlPatternService.match_path('/es/blog/hola%20mundo')
        assert (spanish['locale'], spanish['slug']) == ('es', 'hola mundo')
        nested = UrlPatternService.match_path('/page/company/team')
        assert (nested['post_type'], nested['slug'], nested['full_path']) == ('page', 'team', 'company/team')
        assert UrlPatternService.match_path('/nothing') is None

    def test_new_default_pattern_changes_paths(self, make_post) -> None:
        post = make_post(type='blog', title='Hello')
        assert UrlPatternService.build_post_path(post) == '/blog/hello'

        UrlPatternService.create_pattern('blog', 'en', '/news/{yyyy}/{slug}')

        year = post.created_at.year
        assert UrlPatternService.build_post_path(post) == f'/news/{year}/hello'
        defaults = [p for p in UrlPatternService.list_patterns('blog', 'en') if p.is_default]
        assert [p.pattern for p in defaults] == ['/news/{yyyy}/{slug}']


class TestRedirects:
    """Test suite for redirect management."""

    def test_create_and_conflict(self, app) -> None:
        redirect = UrlPatternService.create_redirect('/old', '/new', 302)
        assert redirect.http_status == 302

        with pytest.raises(CmsError) as exc_info:
            UrlPatternService.create_redirect('/old', '/elsewhere')
        assert exc_info.value.status_code == 409

    @pytest.mark.parametrize('from_path,to_path,status', [
        ('/a', '/a', 301),
        ('/a', '/b', 200),
    ])
    def test_invalid_redirect(self, app, from_path, to_path, status) -> None:
        with pytest.raises(CmsError) as exc_info:
            UrlPatternService.create_redirect(from_path, to_path, status)
        assert exc_info.value.status_code == 400

    def test_repeated_slug_changes_update_redirect(self, make_post, admin_user) -> None:
        post = make_post(title='First')
        PostService.save_post(post, admin_user, 'publish', {'slug': 'second'})
        PostService.save_post(post, admin_user, 'publish', {'slug': 'third'})

        redirects = {r.from_path: r.to_path for r in UrlRedirect.query.all()}
        assert redirects == {'/page/first': '/page/second', '/page/second': '/page/third'}

    def test_slug_restored_to_earlier_value(self, make_post, admin_user) -> None:
        post = make_post(type='blog', title='Alpha', status='published')
        PostService.save_post(post, admin_user, 'publish', {'slug': 'beta'})
        PostService.save_post(post, admin_user, 'publish', {'slug': 'alpha'})

        redirects = {r.from_path: r.to_path for r in UrlRedirect.query.all()}
        assert redirects == {'/blog/beta': '/blog/alpha'}
        assert PublicService.resolve('/blog/alpha')['post']['id'] == post.id
        assert PublicService.resolve('/blog/beta') == {
            'kind': 'redirect', 'location': '/blog/alpha', 'status': 301
        }


class TestPublicResolve:
    """Test suite for PublicService.resolve."""

    def test_normalize_path(self) -> None:
        assert normalize_path(None) == '/'
        assert normalize_path('blog/x/') == '/blog/x'
        assert normalize_path('/') == '/'

    def test_resolves_published_post(self, make_post) -> None:
        post = make_post(type='blog', title='Hello', status='published')

        result = PublicService.resolve('/blog/hello')

        assert result['kind'] == 'post'
        assert result['path'] == '/blog/hello'
        rendered = result['post']
        assert rendered['id'] == post.id
        assert rendered['robots'] == {'index': True, 'follow': True}
        assert [m['type'] for m in rendered['modules']] == ['prose']
        assert rendered['translations'] == [{'locale': 'en', 'path': '/blog/hello'}]

    def test_draft_is_not_public(self, make_post) -> None:
        make_post(type='blog', title='Hidden')
        with pytest.raises(NotFoundError):
            PublicService.resolve('/blog/hidden')

    def test_unknown_path(self, app) -> None:
        with pytest.raises(NotFoundError):
            PublicService.resolve('/no/such/page')

    def test_hierarchical_path_must_match(self, make_post) -> None:
        parent = make_post(title='Company', status='published')
        child = make_post(title='Team', status='published', parent_id=parent.id)

        assert PublicService.resolve('/page/company/team')['post']['id'] == child.id
        with pytest.raises(NotFoundError):
            PublicService.resolve('/page/team')

    def test_redirect_wins(self, make_post, admin_user) -> None:
        post = make_post(title='Old name', status='published')
        PostService.save_post(post, admin_user, 'publish', {'slug': 'new-name'})

        assert PublicService.resolve('/page/old-name') == {
            'kind': 'redirect', 'location': '/page/new-name', 'status': 301
        }
        assert PublicService.resolve('/page/new-name')['post']['id'] == post.id

    def test_richtext_is_sanitized(self, make_post) -> None:
        post = make_post(type='blog', title='Unsafe', status='published')
        prose = post.post_modules[0]
        PostModuleService.update_post_module(
            prose.id, props={'content': '<p>Hi</p><script>alert(1)</script>'}
        )

        content = PublicService.resolve('/blog/unsafe')['post']['modules'][0]['props']['content']
        assert '<p>Hi</p>' in content
        assert '<script>' not in content

    def test_variation_view_tracking(self, make_post, admin_user) -> None:
        original = make_post(type='blog', title='Offer', status='published')
        clone = VariationService.create_variation(original, 'B', admin_user)
        PostService.save_post(clone, admin_user, 'publish', {'status': 'published'})

        result = PublicService.resolve('/blog/offer')
        assert result['post']['id'] in (original.id, clone.id)
        assert result['post']['ab_group_id'] == original.id
        assert PostVariationView.query.count() == 1

        PublicService.resolve('/blog/offer', track=False)
        assert PostVariationView.query.count() == 1


class TestPublicAndUrlsApi:
    """Test suite for the public and URL endpoints."""

    def test_public_resolve_needs_no_token(self, client, make_post) -> None:
        make_post(type='blog', title='Open', status='published')

        response = client.get('/api/public/resolve?path=/blog/open')
        assert response.status_code == 200
        assert response.get_json()['data']['kind'] == 'post'
        assert 'no-store' not in response.headers.get('Cache-Control', '')

        assert client.get('/api/public/resolve?path=/blog/missing').status_code == 404
        assert client.get('/api/public/resolve').status_code == 400

    def test_public_post_and_view(self, client, make_post) -> None:
        draft = make_post(type='blog', title='Draft')
        live = make_post(type='blog', title='Live', status='published')

        assert client.get(f'/api/public/posts/{draft.id}').status_code == 404
        assert client.get(f'/api/public/posts/{live.id}').status_code == 200

        response = client.post(f'/api/public/posts/{live.id}/view')
        assert response.get_json()['data'] == {'recorded': False, 'ab_variation': None}

    def test_patterns_api(self, client, admin_headers, editor_headers) -> None:
        response = client.post('/api/urls/patterns', headers=admin_headers,
                               json={'post_type': 'blog', 'locale': 'en', 'pattern': '/articles/{slug}'})
        assert response.status_code == 201
        pattern_id = response.get_json()['data']['id']

        response = client.post('/api/urls/patterns', headers=admin_headers,
                               json={'post_type': 'blog', 'locale': 'en', 'pattern': '/articles'})
        assert response.status_code == 400

        response = client.get('/api/urls/match?path=/articles/first', headers=editor_headers)
        assert response.get_json()['data']['slug'] == 'first'

        response = client.patch(f'/api/urls/patterns/{pattern_id}', headers=editor_headers,
                                json={'pattern': '/posts/{slug}'})
        assert response.status_code == 403

        response = client.delete(f'/api/urls/patterns/{pattern_id}', headers=admin_headers)
        assert response.status_code == 200

    def test_redirects_api(self, client, admin_headers) -> None:
        response = client.post('/api/urls/redirects', headers=admin_headers,
                               json={'from_path': '/promo', 'to_path': '/blog/offer', 'http_status': 302})
        assert response.status_code == 201
        redirect_id = response.get_json()['data']['id']

        response = client.post('/api/urls/redirects', headers=admin_headers,
                               json={'from_path': '/promo', 'to_path': '/x', 'http_status': 418})
        assert response.status_code == 400

        response = client.get('/api/public/resolve?path=/promo')
        assert response.get_json()['data'] == {'kind': 'redirect', 'location': '/blog/offer', 'status': 302}

        response = client.patch(f'/api/urls/redirects/{redirect_id}', headers=admin_headers,
                                json={'http_status': 308})
        assert response.get_json()['data']['http_status'] == 308

        assert client.delete(f'/api/urls/redirects/{redirect_id}', headers=admin_headers).status_code == 200
        assert client.get('/api/urls/redirects', headers=admin_headers).get_json()['data'] == []
