"""
Tests for menus, taxonomies and templates.
"""

import pytest

from core.exceptions import CmsError
from models.content.menu import MenuItem
from services.menu_service import MenuService
from services.post_service import PostService
from services.taxonomy_service import TaxonomyService
from services.template_service import TemplateService
from services.translation_service import TranslationService


class TestMenus:
    """Test suite for MenuService."""

    def test_tree_resolves_urls(self, make_post, admin_user) -> None:
        about = make_post(title='About')
        spanish = TranslationService.create_translation(about, 'es', admin_user, slug='acerca')
        menu = MenuService.create_menu('Main navigation')

        company = MenuService.add_item(menu.id, 'Company', kind=MenuItem.KIND_SECTION)
        MenuService.add_item(menu.id, 'About', MenuItem.TYPE_POST, post_id=about.id,
                             parent_id=company.id, anchor='#team', locale='en')
        MenuService.add_item(menu.id, 'Acerca', MenuItem.TYPE_POST, post_id=spanish.id,
                             parent_id=company.id, locale='es')
        MenuService.add_item(menu.id, 'Docs', custom_url='https://docs.example.com')

        tree = MenuService.tree(menu, locale='en')

        assert tree['slug'] == 'main-navigation'
        assert [(i['label'], i['url']) for i in tree['items']] == [
            ('Company', None), ('Docs', 'https://docs.example.com')
        ]
        assert [(c['label'], c['url']) for c in tree['items'][0]['children']] == [
            ('About', '/page/about#team')
        ]

        spanish_tree = MenuService.tree(menu, locale='es')
        assert [c['url'] for c in spanish_tree['items'][0]['children']] == ['/es/page/acerca']

    def test_items_nest_two_levels(self, app) -> None:
        menu = MenuService.create_menu('Footer')
        top = MenuService.add_item(menu.id, 'Top', custom_url='/top')
        child = MenuService.add_item(menu.id, 'Child', custom_url='/child', parent_id=top.id)

        with pytest.raises(CmsError) as exc_info:
            MenuService.add_item(menu.id, 'Grandchild', custom_url='/gc', parent_id=child.id)
        assert exc_info.value.status_code == 400

        with pytest.raises(CmsError):
            MenuService.update_item(top.id, parent_id=child.id)

    def test_links_are_required(self, make_post) -> None:
        menu = MenuService.create_menu('Links')
        with pytest.raises(CmsError):
            MenuService.add_item(menu.id, 'No url')
        with pytest.raises(CmsError):
            MenuService.add_item(menu.id, 'Missing post', MenuItem.TYPE_POST, post_id=9999)

    def test_order_and_reorder(self, app) -> None:
        menu = MenuService.create_menu('Ordered')
        first = MenuService.add_item(menu.id, 'First', custom_url='/1')
        second = MenuService.add_item(menu.id, 'Second', custom_url='/2')
        assert (first.order_index, second.order_index) == (0, 1)

        MenuService.reorder_items(menu.id, [{'id': first.id, 'order_index': 5}, {'id': second.id, 'order_index': 0}])

        assert [i['label'] for i in MenuService.tree(menu)['items']] == ['Second', 'First']

        other = MenuService.create_menu('Other')
        with pytest.raises(CmsError):
            MenuService.reorder_items(other.id, [{'id': first.id, 'order_index': 1}])

    def test_duplicate_slug(self, app) -> None:
        MenuService.create_menu('Main')
        with pytest.raises(CmsError) as exc_info:
            MenuService.create_menu('Another main', slug='main')
        assert exc_info.value.status_code == 409

    def test_menus_api(self, client, editor_headers, translator_headers) -> None:
        response = client.post('/api/menus', headers=editor_headers, json={'name': 'Header'})
        assert response.status_code == 201
        menu_id = response.get_json()['data']['id']

        response = client.post(f'/api/menus/{menu_id}/items', headers=editor_headers,
                               json={'label': 'Blog', 'custom_url': '/blog'})
        assert response.status_code == 201

        response = client.get('/api/menus/slug/header/tree', headers=translator_headers)
        assert [i['url'] for i in response.get_json()['data']['items']] == ['/blog']

        response = client.post(f'/api/menus/{menu_id}/items', headers=translator_headers,
                               json={'label': 'Nope', 'custom_url': '/nope'})
        assert response.status_code == 403

        assert client.delete(f'/api/menus/{menu_id}', headers=editor_headers).status_code == 403


class TestTaxonomies:
    """Test suite for TaxonomyService."""

    def test_term_tree(self, app) -> None:
        topics = TaxonomyService.create_taxonomy('Topics', hierarchical=True)
        science = TaxonomyService.create_term(topics.id, 'Science', order_index=1)
        TaxonomyService.create_term(topics.id, 'Arts', order_index=0)
        TaxonomyService.create_term(topics.id, 'Physics', parent_id=science.id)

        tree = TaxonomyService.term_tree(topics)

        assert [n['slug'] for n in tree] == ['arts', 'science']
        assert [c['slug'] for c in tree[1]['children']] == ['physics']

    def test_flat_taxonomy_rejects_parents(self, app) -> None:
        tags = TaxonomyService.create_taxonomy('Tags')
        python = TaxonomyService.create_term(tags.id, 'Python')

        with pytest.raises(CmsError) as exc_info:
            TaxonomyService.create_term(tags.id, 'Flask', parent_id=python.id)
        assert exc_info.value.status_code == 400

    def test_term_cycles_rejected(self, app) -> None:
        topics = TaxonomyService.create_taxonomy('Topics', hierarchical=True)
        root = TaxonomyService.create_term(topics.id, 'Root')
        leaf = TaxonomyService.create_term(topics.id, 'Leaf', parent_id=root.id)

        with pytest.raises(CmsError) as exc_info:
            TaxonomyService.update_term(root.id, parent_id=leaf.id)
        assert exc_info.value.status_code == 400

    def test_duplicate_slugs(self, app) -> None:
        tags = TaxonomyService.create_taxonomy('Tags')
        TaxonomyService.create_term(tags.id, 'Python')
        with pytest.raises(CmsError) as exc_info:
            TaxonomyService.create_term(tags.id, 'python')
        assert exc_info.value.status_code == 409
        with pytest.raises(CmsError):
            TaxonomyService.create_taxonomy('tags')

    def test_assignments_respect_post_types(self, make_post, admin_user) -> None:
        tags = TaxonomyService.create_taxonomy('Tags', post_types=['blog'])
        python = TaxonomyService.create_term(tags.id, 'Python')
        blog = make_post(type='blog', title='Tips')
        page = make_post(title='Landing')

        assert TaxonomyService.apply_assignments(blog, [python.id]) == [python]
        assert TaxonomyService.apply_assignments(page, [python.id, 9999]) == []

        PostService.save_post(blog, admin_user, 'publish', {'taxonomy_term_ids': []})
        assert blog.terms == []

    def test_staged_assignments(self, make_post, admin_user) -> None:
        tags = TaxonomyService.create_taxonomy('Tags')
        python = TaxonomyService.create_term(tags.id, 'Python')
        post = make_post()

        PostService.save_post(post, admin_user, 'review', {'taxonomy_term_ids': [python.id]})

        assert post.terms == []
        assert post.review_draft['taxonomy_term_ids'] == [python.id]

    def test_taxonomies_api(self, client, admin_headers, editor_headers) -> None:
        response = client.post('/api/taxonomies', headers=admin_headers,
                               json={'name': 'Categories', 'hierarchical': True})
        taxonomy_id = response.get_json()['data']['id']

        response = client.post(f'/api/taxonomies/{taxonomy_id}/terms', headers=admin_headers,
                               json={'name': 'Guides'})
        parent_id = response.get_json()['data']['id']
        client.post(f'/api/taxonomies/{taxonomy_id}/terms', headers=admin_headers,
                    json={'name': 'Setup', 'parent_id': parent_id})

        response = client.get(f'/api/taxonomies/{taxonomy_id}/terms?tree=1', headers=editor_headers)
        tree = response.get_json()['data']
        assert [(n['name'], [c['name'] for c in n['children']]) for n in tree] == [('Guides', ['Setup'])]

        response = client.post(f'/api/taxonomies/{taxonomy_id}/terms', headers=editor_headers,
                               json={'name': 'Denied'})
        assert response.status_code == 403


class TestTemplates:
    """Test suite for TemplateService."""

    def test_template_seeds_new_posts(self, make_post) -> None:
        template = TemplateService.create_template('Landing', 'page', locked=True, modules=[
            {'type': 'hero', 'props': {'title': 'Big offer'}},
            {'type': 'faq', 'scope': 'global', 'global_slug': 'shared-faq'},
            {'type': 'form', 'scope': 'local'},
        ])
        assert [m.locked for m in template.modules] == [True, True, True]

        post = make_post(title='Offer', template_id=template.id)
        other = make_post(title='Offer 2', template_id=template.id)

        assert [pm.module_instance.type for pm in post.post_modules] == ['hero', 'faq', 'form']
        assert post.post_modules[0].module_instance.props == {'title': 'Big offer'}
        assert all(pm.locked for pm in post.post_modules)
        assert post.post_modules[1].module_id == other.post_modules[1].module_id
        assert post.post_modules[0].module_id != other.post_modules[0].module_id

    @pytest.mark.parametrize('modules', [
        [{'type': 'form', 'scope': 'global', 'global_slug': 'f'}],
        [{'type': 'faq', 'scope': 'global'}],
    ])
    def test_invalid_slots(self, app, modules) -> None:
        with pytest.raises(CmsError) as exc_info:
            TemplateService.create_template('Broken', 'page', modules=modules)
        assert exc_info.value.status_code == 400

    def test_unknown_module_and_post_type(self, app) -> None:
        with pytest.raises(CmsError) as exc_info:
            TemplateService.create_template('Broken', 'page', modules=[{'type': 'carousel'}])
        assert exc_info.value.status_code == 404
        with pytest.raises(CmsError) as exc_info:
            TemplateService.create_template('Broken', 'recipe')
        assert exc_info.value.status_code == 400

    def test_template_of_other_post_type(self, make_post) -> None:
        template = TemplateService.create_template('Article', 'blog')
        with pytest.raises(CmsError) as exc_info:
            make_post(template_id=template.id)
        assert exc_info.value.status_code == 400

    def test_template_in_use(self, make_post) -> None:
        template = TemplateService.create_template('Landing', 'page')
        post = make_post(template_id=template.id)

        with pytest.raises(CmsError) as exc_info:
            TemplateService.delete_template(template.id)
        assert exc_info.value.status_code == 409
        assert exc_info.value.meta == {'post_count': 1}

        PostService.delete_post(post)
        TemplateService.delete_template(template.id)

    def test_update_replaces_slots(self, app) -> None:
        template = TemplateService.create_template('Simple', 'page', modules=[{'type': 'prose'}])
        TemplateService.update_template(template.id, modules=[{'type': 'hero'}, {'type': 'faq'}])
        assert [m.type for m in template.modules] == ['hero', 'faq']

    def test_templates_api(self, client, admin_headers, editor_headers) -> None:
        response = client.post('/api/templates', headers=admin_headers, json={
            'name': 'Docs', 'post_type': 'documentation', 'modules': [{'type': 'prose'}]
        })
        assert response.status_code == 201
        assert response.get_json()['data']['modules'][0]['type'] == 'prose'

        response = client.post('/api/templates', headers=admin_headers,
                               json={'name': 'Docs', 'post_type': 'documentation'})
        assert response.status_code == 409

        response = client.get('/api/templates?post_type=documentation', headers=editor_headers)
        assert [t['name'] for t in response.get_json()['data']] == ['Docs']
