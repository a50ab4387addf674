"""
Tests for translation families.
"""

import pytest

from core.exceptions import CmsError
from models.content.post import Post
from services.translation_service import TranslationService


class TestTranslationService:
    """Test suite for TranslationService."""

    def test_create_translation_copies_modules(self, make_post, admin_user) -> None:
        original = make_post(title='About')

        translation = TranslationService.create_translation(original, 'es', admin_user, title='Acerca')

        assert translation.translation_of_id == original.id
        assert translation.locale == 'es'
        assert translation.title == 'Acerca'
        assert translation.status == Post.STATUS_DRAFT
        assert translation.slug.startswith('about-es-')
        assert [pm.module_instance.type for pm in translation.post_modules] == ['hero', 'prose']
        original_instances = {pm.module_id for pm in original.post_modules}
        assert not original_instances & {pm.module_id for pm in translation.post_modules}

    def test_translation_of_translation_links_to_original(self, make_post, admin_user) -> None:
        original = make_post()
        spanish = TranslationService.create_translation(original, 'es', admin_user, slug='hola')

        french = TranslationService.create_translation(spanish, 'fr', admin_user, slug='bonjour')

        assert french.translation_of_id == original.id
        assert [m.locale for m in french.family()] == ['en', 'es', 'fr']

    def test_duplicate_locale(self, make_post, admin_user) -> None:
        original = make_post()
        TranslationService.create_translation(original, 'es', admin_user)

        with pytest.raises(CmsError) as exc_info:
            TranslationService.create_translation(original, 'es', admin_user)
        assert exc_info.value.status_code == 409

        with pytest.raises(CmsError) as exc_info:
            TranslationService.create_translation(original, 'en', admin_user)
        assert exc_info.value.status_code == 409

    def test_unsupported_locale(self, make_post, admin_user) -> None:
        with pytest.raises(CmsError) as exc_info:
            TranslationService.create_translation(make_post(), 'de', admin_user)
        assert exc_info.value.status_code == 400

    def test_list_family_paths(self, make_post, admin_user) -> None:
        original = make_post(title='About')
        TranslationService.create_translation(original, 'es', admin_user, slug='acerca')

        family = TranslationService.list_family(original)

        assert [(m['locale'], m['is_original'], m['path']) for m in family] == [
            ('en', True, '/page/about'),
            ('es', False, '/es/page/acerca'),
        ]

    def test_delete_translation(self, make_post, admin_user) -> None:
        original = make_post()
        spanish = TranslationService.create_translation(original, 'es', admin_user, slug='hola')

        deleted = TranslationService.delete_translation(original, 'es')

        assert deleted.id == spanish.id
        assert deleted.is_deleted
        assert TranslationService.get_translation(original, 'es') is None

    def test_delete_original_locale_rejected(self, make_post) -> None:
        with pytest.raises(CmsError) as exc_info:
            TranslationService.delete_translation(make_post(), 'en')
        assert exc_info.value.status_code == 400

    def test_delete_missing_translation(self, make_post) -> None:
        with pytest.raises(CmsError) as exc_info:
            TranslationService.delete_translation(make_post(), 'fr')
        assert exc_info.value.status_code == 404


class TestTranslationsApi:
    """Test suite for the translation endpoints."""

    def test_translator_creates_translation(self, client, translator_headers, make_post) -> None:
        original = make_post(title='Pricing')

        response = client.post(f'/api/posts/{original.id}/translations', headers=translator_headers,
                               json={'locale': 'fr', 'slug': 'tarifs', 'title': 'Tarifs'})
        assert response.status_code == 201
        assert response.get_json()['data']['translation_of_id'] == original.id

        response = client.get(f'/api/posts/{original.id}/translations', headers=translator_headers)
        assert [m['locale'] for m in response.get_json()['data']] == ['en', 'fr']

    def test_duplicate_translation_conflict(self, client, admin_headers, make_post, admin_user) -> None:
        original = make_post()
        TranslationService.create_translation(original, 'fr', admin_user)

        response = client.post(f'/api/posts/{original.id}/translations', headers=admin_headers,
                               json={'locale': 'fr'})
        assert response.status_code == 409

    def test_delete_translation_endpoint(self, client, admin_headers, make_post, admin_user) -> None:
        original = make_post()
        TranslationService.create_translation(original, 'fr', admin_user)

        response = client.delete(f'/api/posts/{original.id}/translations/fr', headers=admin_headers)
        assert response.status_code == 200

        response = client.delete(f'/api/posts/{original.id}/translations/en', headers=admin_headers)
        assert response.status_code == 400
