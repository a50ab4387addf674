"""
Tests for A/B variations.
"""

import random

import pytest

from core.exceptions import CmsError
from models.content.post import Post
from services.post_service import PostService
from services.translation_service import TranslationService
from services.variation_service import VariationService


def _types(post):
    return [pm.module_instance.type for pm in post.post_modules]


class TestCreateVariation:
    """Test suite for VariationService.create_variation."""

    def test_clone_of_single_post(self, make_post, admin_user) -> None:
        original = make_post(title='Landing')

        clone = VariationService.create_variation(original, 'B', admin_user)

        assert clone.id != original.id
        assert clone.slug.startswith('landing-v-b-')
        assert clone.title == 'Landing (Variation B)'
        assert clone.status == Post.STATUS_DRAFT
        assert clone.robots_json == {'index': False, 'follow': False}
        assert clone.ab_group_id == original.id
        assert clone.ab_variation == 'B'
        assert original.ab_group_id == original.id
        assert original.ab_variation == 'A'

        assert _types(clone) == _types(original)
        original_instances = {pm.module_id for pm in original.post_modules}
        assert not original_instances & {pm.module_id for pm in clone.post_modules}

    def test_clones_whole_family(self, make_post, admin_user) -> None:
        original = make_post(title='Landing')
        spanish = TranslationService.create_translation(original, 'es', admin_user, slug='aterrizaje')

        clone = VariationService.create_variation(spanish, 'B', admin_user)

        assert clone.locale == 'es'
        group = Post.query.filter_by(ab_group_id=original.id).all()
        assert len(group) == 4
        english_clone = [p for p in group if p.locale == 'en' and p.ab_variation == 'B'][0]
        assert clone.translation_of_id == english_clone.id
        assert english_clone.translation_of_id is None

    def test_duplicate_label(self, make_post, admin_user) -> None:
        original = make_post()
        VariationService.create_variation(original, 'B', admin_user)

        with pytest.raises(CmsError) as exc_info:
            VariationService.create_variation(original, 'B', admin_user)
        assert exc_info.value.status_code == 409

    def test_original_in_trash(self, make_post, admin_user) -> None:
        original = make_post(type='blog', title='Launch')
        spanish = TranslationService.create_translation(original, 'es', admin_user, slug='lanzamiento')
        PostService.delete_post(original, admin_user)

        with pytest.raises(CmsError) as exc_info:
            VariationService.create_variation(spanish, 'B', admin_user)

        assert exc_info.value.status_code == 400
        assert exc_info.value.meta == {'original_id': original.id}
        assert Post.query.filter(Post.ab_variation.isnot(None)).count() == 0

        PostService.restore_post(original, admin_user)
        assert VariationService.create_variation(spanish, 'B', admin_user).locale == 'es'

    @pytest.mark.parametrize('label', ['', 'two words', 'x' * 11])
    def test_invalid_label(self, make_post, admin_user, label) -> None:
        with pytest.raises(CmsError) as exc_info:
            VariationService.create_variation(make_post(), label, admin_user)
        assert exc_info.value.status_code == 400

    def test_disabled_post_type(self, make_post, admin_user) -> None:
        doc = make_post(type='documentation', title='Install guide')
        with pytest.raises(CmsError) as exc_info:
            VariationService.create_variation(doc, 'B', admin_user)
        assert exc_info.value.status_code == 400


class TestDeleteAndPromote:
    """Test suite for removing and promoting variations."""

    def test_delete_last_variation_ends_group(self, make_post, admin_user) -> None:
        original = make_post()
        clone = VariationService.create_variation(original, 'B', admin_user)

        result = VariationService.delete_variation(clone, admin_user)

        assert result == {'remaining_post_id': original.id, 'group_ended': True}
        assert clone.is_deleted
        assert original.ab_group_id is None
        assert original.ab_variation is None

    def test_delete_primary_rekeys_group(self, make_post, admin_user) -> None:
        original = make_post()
        variation_b = VariationService.create_variation(original, 'B', admin_user)
        variation_c = VariationService.create_variation(original, 'C', admin_user)

        result = VariationService.delete_variation(original, admin_user)

        assert result == {'remaining_post_id': variation_b.id, 'group_ended': False}
        assert variation_b.ab_group_id == variation_b.id
        assert variation_c.ab_group_id == variation_b.id

    def test_delete_outside_group(self, make_post, admin_user) -> None:
        with pytest.raises(CmsError) as exc_info:
            VariationService.delete_variation(make_post(), admin_user)
        assert exc_info.value.status_code == 400

    def test_promote_moves_content_to_main(self, make_post, admin_user) -> None:
        original = make_post(title='Landing')
        winner = VariationService.create_variation(original, 'B', admin_user)
        winner.excerpt = 'Winning copy'
        winner_instances = [pm.module_id for pm in winner.post_modules]

        main = VariationService.promote_variation(winner, admin_user)

        assert main.id == original.id
        assert main.title == 'Landing'
        assert main.excerpt == 'Winning copy'
        assert main.robots_json is None
        assert main.ab_group_id is None
        assert main.ab_variation is None
        assert [pm.module_id for pm in main.post_modules] == winner_instances
        assert winner.is_deleted

    def test_promote_outside_group(self, make_post, admin_user) -> None:
        with pytest.raises(CmsError):
            VariationService.promote_variation(make_post(), admin_user)


class TestTraffic:
    """Test suite for variation choice and statistics."""

    def test_choose_variation(self, make_post, admin_user) -> None:
        original = make_post()
        clone = VariationService.create_variation(original, 'B', admin_user)
        group = VariationService.group_members(original.id)

        assert VariationService.choose_variation([]) is None
        assert VariationService.choose_variation([original]) is original

        rng = random.Random(7)
        picked = {VariationService.choose_variation(group, rng=rng).id for _ in range(60)}
        assert picked == {original.id, clone.id}

    def test_ab_stats(self, make_post, admin_user) -> None:
        original = make_post()
        clone = VariationService.create_variation(original, 'B', admin_user)
        VariationService.record_view(original)
        VariationService.record_view(clone)
        VariationService.record_view(clone)

        stats = VariationService.ab_stats(clone)

        assert stats['A'] == {'views': 1, 'submissions': 0, 'conversion_rate': 0.0}
        assert stats['B']['views'] == 2

    def test_record_view_outside_group(self, make_post) -> None:
        assert VariationService.record_view(make_post()) is None


class TestVariationsApi:
    """Test suite for the variation endpoints."""

    def test_create_list_and_stats(self, client, admin_headers, make_post) -> None:
        original = make_post()

        response = client.post(f'/api/posts/{original.id}/variations', headers=admin_headers,
                               json={'variation': 'B'})
        assert response.status_code == 201
        assert response.get_json()['data']['ab_variation'] == 'B'

        response = client.get(f'/api/posts/{original.id}/variations', headers=admin_headers)
        assert [p['ab_variation'] for p in response.get_json()['data']] == ['A', 'B']

        response = client.get(f'/api/posts/{original.id}/ab-stats', headers=admin_headers)
        assert set(response.get_json()['data']) >= {'A', 'B'}

    def test_invalid_label_rejected(self, client, admin_headers, make_post) -> None:
        response = client.post(f'/api/posts/{make_post().id}/variations', headers=admin_headers,
                               json={'variation': 'not valid'})
        assert response.status_code == 400

    def test_editor_cannot_promote(self, client, editor_headers, make_post, admin_user) -> None:
        clone = VariationService.create_variation(make_post(), 'B', admin_user)
        response = client.post(f'/api/posts/{clone.id}/variations/promote', headers=editor_headers)
        assert response.status_code == 403
