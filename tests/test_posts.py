"""
Tests for post creation, saving, trash, bulk actions, ordering and
scheduled publication.
"""

from datetime import timedelta

import pytest

from core.exceptions import CmsError, ConflictError, ForbiddenError
from models.base import utcnow
from models.content.post import Post
from models.content.url import UrlRedirect
from services.post_service import PostService
from tests.conftest import headers_for


class TestCreatePost:
    """Test suite for PostService.create_post."""

    def test_page_is_seeded_with_default_modules(self, make_post) -> None:
        post = make_post(title='About Us')

        assert post.slug == 'about-us'
        assert post.status == Post.STATUS_DRAFT
        assert [pm.module_instance.type for pm in post.post_modules] == ['hero', 'prose']
        assert post.canonical_url == '/page/about-us'
        assert post.revisions[0].mode == 'approved'

    def test_seeding_can_be_skipped(self, make_post) -> None:
        post = make_post(seed_modules=False)
        assert post.post_modules == []

    def test_duplicate_slug_in_locale_conflicts(self, make_post) -> None:
        make_post(title='Contact')
        with pytest.raises(ConflictError):
            make_post(title='Contact')

    def test_same_slug_in_other_locale_is_allowed(self, make_post) -> None:
        make_post(title='Contact')
        other = make_post(title='Contact', locale='es')
        assert other.locale == 'es'

    def test_unknown_type_and_locale_are_rejected(self, make_post) -> None:
        with pytest.raises(CmsError) as exc_info:
            make_post(type='recipe')
        assert exc_info.value.status_code == 400
        with pytest.raises(CmsError):
            make_post(locale='de')

    def test_profile_is_one_per_user(self, make_post) -> None:
        profile = make_post(type='profile', title='Me')
        assert profile.post_modules == []
        with pytest.raises(ConflictError):
            make_post(type='profile', title='Me again')

    def test_publishing_needs_publish_permission(self, make_post, editor_user) -> None:
        with pytest.raises(ForbiddenError):
            make_post(status=Post.STATUS_PUBLISHED, user=editor_user)
        draft = make_post(user=editor_user)
        assert draft.author_id == editor_user.id

    def test_published_post_gets_published_at(self, make_post) -> None:
        post = make_post(status=Post.STATUS_PUBLISHED)
        assert post.published_at is not None


class TestHierarchy:
    """Test suite for parent validation."""

    def test_child_path_includes_parent(self, make_post) -> None:
        parent = make_post(title='Company')
        child = make_post(title='Team', parent_id=parent.id)
        assert child.canonical_url == '/page/company/team'

    def test_cycles_are_rejected(self, make_post, admin_user) -> None:
        parent = make_post(title='A')
        child = make_post(title='B', parent_id=parent.id)
        with pytest.raises(CmsError) as exc_info:
            PostService.update_post(parent, admin_user, parent_id=child.id)
        assert exc_info.value.status_code == 400

    def test_flat_types_have_no_parents(self, make_post) -> None:
        parent = make_post(type='blog', title='First')
        with pytest.raises(CmsError):
            make_post(type='blog', title='Second', parent_id=parent.id)

    def test_parent_must_share_locale(self, make_post) -> None:
        parent = make_post(title='Root', locale='es')
        with pytest.raises(CmsError):
            make_post(title='Leaf', parent_id=parent.id)


class TestSavePost:
    """Test suite for mode-aware saves."""

    def test_publish_save_changes_live_columns(self, make_post, admin_user) -> None:
        post = make_post(title='Old')
        PostService.save_post(post, admin_user, 'publish', {'title': 'New', 'excerpt': 'Short'})
        assert post.title == 'New'
        assert post.excerpt == 'Short'
        assert post.review_draft is None

    def test_review_save_stages_fields(self, make_post, editor_user) -> None:
        post = make_post(title='Live title')
        PostService.save_post(post, editor_user, 'review',
                              {'title': 'Draft title', 'status': Post.STATUS_PUBLISHED})

        assert post.title == 'Live title'
        assert post.status == Post.STATUS_DRAFT
        assert post.review_draft['title'] == 'Draft title'
        assert 'status' not in post.review_draft or post.review_draft['status'] == Post.STATUS_DRAFT
        assert post.review_draft['savedBy'] == editor_user.email

    def test_review_save_stages_module_props(self, make_post, admin_user) -> None:
        post = make_post()
        prose = post.post_modules[1]
        PostService.save_post(post, admin_user, 'review',
                              {'modules': [{'id': prose.id, 'props': {'content': '<p>Draft</p>'}}]})

        assert prose.module_instance.props == {'content': ''}
        assert prose.module_instance.review_props == {'content': '<p>Draft</p>'}

    def test_slug_change_adds_redirect(self, make_post, admin_user) -> None:
        post = make_post(title='Old Name')
        PostService.save_post(post, admin_user, 'publish', {'slug': 'new-name'})

        redirect = UrlRedirect.query.filter_by(from_path='/page/old-name').first()
        assert redirect is not None
        assert redirect.to_path == '/page/new-name'
        assert post.canonical_url == '/page/new-name'

    def test_slug_change_conflict(self, make_post, admin_user) -> None:
        make_post(title='Taken')
        post = make_post(title='Free')
        with pytest.raises(ConflictError):
            PostService.save_post(post, admin_user, 'publish', {'slug': 'taken'})


class TestTrashAndBulk:
    """Test suite for deletion, restore and bulk actions."""

    def test_delete_and_restore(self, make_post, admin_user) -> None:
        post = make_post()
        PostService.delete_post(post, admin_user)
        assert post.is_deleted
        assert PostService.list_posts(in_trash=True)['meta']['total_items'] == 1

        PostService.restore_post(post, admin_user)
        assert not post.is_deleted
        with pytest.raises(CmsError):
            PostService.restore_post(post, admin_user)

    def test_bulk_publish(self, make_post, admin_user) -> None:
        posts = [make_post(), make_post()]
        result = PostService.bulk_action([p.id for p in posts], 'publish', admin_user)
        assert sorted(result['updated']) == sorted(p.id for p in posts)
        assert all(p.status == Post.STATUS_PUBLISHED for p in posts)

    def test_bulk_delete_requires_archived(self, make_post, admin_user) -> None:
        post = make_post()
        with pytest.raises(CmsError) as exc_info:
            PostService.bulk_action([post.id], 'delete', admin_user)
        assert exc_info.value.meta == {'not_archived': [post.id]}

        PostService.bulk_action([post.id], 'archive', admin_user)
        PostService.bulk_action([post.id], 'delete', admin_user)
        assert post.is_deleted

    def test_bulk_publish_forbidden_for_editor(self, make_post, editor_user) -> None:
        post = make_post()
        with pytest.raises(ForbiddenError):
            PostService.bulk_action([post.id], 'publish', editor_user)


class TestReorderAndSchedule:
    """Test suite for reordering and scheduled publication."""

    def test_reorder_within_scope(self, make_post) -> None:
        first, second = make_post(), make_post()
        PostService.reorder_posts({'type': 'page', 'locale': 'en'},
                                  [{'id': first.id, 'order_index': 1}, {'id': second.id, 'order_index': 0}])
        assert (first.order_index, second.order_index) == (1, 0)

    def test_reorder_outside_scope_fails(self, make_post) -> None:
        post = make_post(locale='es')
        with pytest.raises(CmsError):
            PostService.reorder_posts({'type': 'page', 'locale': 'en'}, [{'id': post.id, 'order_index': 3}])

    def test_due_posts_are_published(self, make_post) -> None:
        due = make_post(status=Post.STATUS_SCHEDULED, scheduled_at=utcnow() - timedelta(minutes=5))
        later = make_post(status=Post.STATUS_SCHEDULED, scheduled_at=utcnow() + timedelta(days=1))

        published = PostService.publish_scheduled_posts()

        assert [p.id for p in published] == [due.id]
        assert due.status == Post.STATUS_PUBLISHED
        assert later.status == Post.STATUS_SCHEDULED

    def test_scheduled_status_requires_time(self, make_post) -> None:
        with pytest.raises(CmsError):
            make_post(status=Post.STATUS_SCHEDULED)


class TestPostsApi:
    """Test suite for the posts endpoints."""

    def test_requires_authentication(self, client) -> None:
        response = client.get('/api/posts')
        assert response.status_code == 401

    def test_create_and_get(self, client, admin_headers) -> None:
        response = client.post('/api/posts', headers=admin_headers,
                               json={'type': 'blog', 'locale': 'en', 'title': 'Hello World'})
        assert response.status_code == 201
        body = response.get_json()
        assert body['status'] == 'success'
        post_id = body['data']['post']['id']
        assert body['data']['post']['canonical_url'] == '/blog/hello-world'
        assert [m['type'] for m in body['data']['content']['modules']] == ['prose']

        response = client.get(f'/api/posts/{post_id}', headers=admin_headers)
        assert response.status_code == 200
        assert response.get_json()['data']['post']['title'] == 'Hello World'

    def test_create_validation_error(self, client, admin_headers) -> None:
        response = client.post('/api/posts', headers=admin_headers, json={'type': 'blog'})
        assert response.status_code == 400
        assert 'title' in response.get_json()['meta']['errors']

    def test_list_filters(self, client, admin_headers, make_post) -> None:
        make_post(type='blog', title='Blog one')
        make_post(title='Page one')
        response = client.get('/api/posts?type=blog', headers=admin_headers)
        data = response.get_json()
        assert [p['title'] for p in data['data']] == ['Blog one']
        assert data['meta']['total_items'] == 1

    def test_review_save_and_approve(self, client, editor_headers, admin_headers, make_post) -> None:
        post = make_post(title='Live')
        response = client.patch(f'/api/posts/{post.id}', headers=editor_headers,
                                json={'mode': 'review', 'title': 'Proposed'})
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['post']['title'] == 'Live'
        assert data['content']['post']['title'] == 'Proposed'

        response = client.post(f'/api/posts/{post.id}/approve', headers=editor_headers,
                               json={'mode': 'review'})
        assert response.status_code == 403

        response = client.post(f'/api/posts/{post.id}/approve', headers=admin_headers,
                               json={'mode': 'review'})
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['promoted'] is True
        assert data['post']['title'] == 'Proposed'
        assert data['post']['review_draft'] is None

    def test_translator_cannot_save_ai_review(self, client, translator_headers, make_post) -> None:
        post = make_post()
        response = client.put(f'/api/posts/{post.id}', headers=translator_headers,
                              json={'mode': 'ai-review', 'title': 'Nope'})
        assert response.status_code == 403
        assert response.get_json()['meta']['permission'] == 'posts.ai-review.save'

    def test_editor_cannot_delete(self, client, editor_user, make_post) -> None:
        post = make_post()
        response = client.delete(f'/api/posts/{post.id}', headers=headers_for(editor_user))
        assert response.status_code == 403

    def test_delete_and_missing_post(self, client, admin_headers, make_post) -> None:
        post = make_post()
        assert client.delete(f'/api/posts/{post.id}', headers=admin_headers).status_code == 200
        assert client.patch(f'/api/posts/{post.id}', headers=admin_headers,
                            json={'title': 'x'}).status_code == 404
        assert client.get('/api/posts/9999', headers=admin_headers).status_code == 404

    def test_bulk_endpoint(self, client, admin_headers, make_post) -> None:
        post = make_post()
        response = client.post('/api/posts/bulk', headers=admin_headers,
                               json={'ids': [post.id], 'action': 'delete'})
        assert response.status_code == 400
        assert response.get_json()['meta']['not_archived'] == [post.id]

        response = client.post('/api/posts/bulk', headers=admin_headers,
                               json={'ids': [post.id], 'action': 'explode'})
        assert response.status_code == 400
