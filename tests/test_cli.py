"""
Tests for the ``flask cms`` command group.
"""

import json
from datetime import timedelta

from extensions import db
from models.auth.user import User
from models.base import utcnow
from models.content.locale import Locale
from models.content.post import Post
from models.content.revision import PostRevision
from models.content.url import UrlPattern
from services.revision_service import RevisionService


class TestCmsCommands:
    """Test suite for the CMS CLI commands."""

    def test_init_db_with_seed(self, runner) -> None:
        result = runner.invoke(args=['cms', 'init-db', '--seed'])

        assert result.exit_code == 0, result.output
        assert 'Database initialized successfully' in result.output
        assert [loc.code for loc in Locale.query.order_by(Locale.code).all()] == ['en', 'es', 'fr']
        assert UrlPattern.query.filter_by(post_type='blog', locale='es').count() == 1

    def test_seed_admin(self, runner) -> None:
        args = ['cms', 'seed', '--admin-email', 'root@example.com', '--admin-password', 'Password123!']

        result = runner.invoke(args=args)
        assert result.exit_code == 0, result.output
        assert 'Created admin root@example.com' in result.output
        assert User.query.filter_by(email='root@example.com').one().role == User.ROLE_ADMIN

        result = runner.invoke(args=args)
        assert 'Admin root@example.com already exists' in result.output

        result = runner.invoke(args=['cms', 'seed', '--admin-email', 'other@example.com'])
        assert result.exit_code == 2

    def test_create_user(self, runner) -> None:
        args = ['cms', 'create-user', '--email', 'New@Example.com', '--password', 'Password123!',
                '--role', 'translator', '--name', 'New Person']

        result = runner.invoke(args=args)
        assert result.exit_code == 0, result.output
        assert 'User new@example.com created with role translator' in result.output

        result = runner.invoke(args=args)
        assert result.exit_code == 1
        assert 'already exists' in result.output

        result = runner.invoke(args=['cms', 'create-user', '--email', 'x@example.com',
                                     '--password', 'Password123!', '--role', 'owner'])
        assert result.exit_code == 2

    def test_publish_scheduled(self, runner, make_post) -> None:
        due = make_post(title='Due', status=Post.STATUS_SCHEDULED,
                        scheduled_at=utcnow() - timedelta(minutes=1))
        make_post(title='Later', status=Post.STATUS_SCHEDULED,
                  scheduled_at=utcnow() + timedelta(days=1))

        result = runner.invoke(args=['cms', 'publish-scheduled'])

        assert result.exit_code == 0, result.output
        assert f'Published post {due.id} (en/due)' in result.output
        assert '1 post(s) published' in result.output

    def test_prune_revisions(self, runner, make_post, admin_user) -> None:
        post = make_post(title='Many Revisions')
        for _ in range(3):
            RevisionService.record_revision(post, PostRevision.MODE_APPROVED, admin_user, commit=True)
        assert PostRevision.query.filter_by(post_id=post.id).count() == 4

        result = runner.invoke(args=['cms', 'prune-revisions', '--limit', '1'])

        assert 'Removed 3 revision(s)' in result.output
        assert PostRevision.query.filter_by(post_id=post.id).count() == 1

    def test_module_types(self, runner) -> None:
        result = runner.invoke(args=['cms', 'module-types', '--json'])
        assert result.exit_code == 0, result.output
        assert [m['type'] for m in json.loads(result.output)] == [
            'prose', 'hero', 'callout', 'gallery', 'faq', 'form'
        ]

        result = runner.invoke(args=['cms', 'module-types'])
        lines = result.output.splitlines()
        assert lines[0].split() == ['prose', 'post,', 'global']
        assert lines[-1].split() == ['form', 'post']

    def test_export_and_import(self, runner, make_post, admin_user, tmp_path) -> None:
        post = make_post(title='Exported')

        result = runner.invoke(args=['cms', 'export-post', str(post.id)])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data['post']['slug'] == 'exported'

        path = tmp_path / 'post.json'
        result = runner.invoke(args=['cms', 'export-post', str(post.id), '-o', str(path)])
        assert f'Exported post {post.id} to {path}' in result.output

        data = json.loads(path.read_text(encoding='utf-8'))
        data['post']['slug'] = 'imported'
        path.write_text(json.dumps(data), encoding='utf-8')

        result = runner.invoke(args=['cms', 'import-post', str(path), '--user', 'admin@example.com'])
        assert result.exit_code == 0, result.output
        imported = Post.query.filter_by(slug='imported').one()
        assert 'Imported post %s (en/imported)' % imported.id in result.output
        assert imported.author_id == admin_user.id
        assert [pm.module_instance.type for pm in imported.post_modules] == \
            [pm.module_instance.type for pm in post.post_modules]

    def test_import_errors(self, runner, tmp_path) -> None:
        bad = tmp_path / 'bad.json'
        bad.write_text('{not json', encoding='utf-8')
        result = runner.invoke(args=['cms', 'import-post', str(bad)])
        assert result.exit_code == 1
        assert 'Invalid JSON' in result.output

        unsupported = tmp_path / 'old.json'
        unsupported.write_text(json.dumps({'version': 99, 'post': {}}), encoding='utf-8')
        result = runner.invoke(args=['cms', 'import-post', str(unsupported)])
        assert result.exit_code == 1

        result = runner.invoke(args=['cms', 'export-post', '99999'])
        assert result.exit_code == 1

    def test_import_unknown_user(self, runner, tmp_path) -> None:
        path = tmp_path / 'post.json'
        path.write_text(json.dumps({'version': 1, 'post': {}}), encoding='utf-8')

        result = runner.invoke(args=['cms', 'import-post', str(path), '--user', 'ghost@example.com'])

        assert result.exit_code == 1
        assert 'No user with email ghost@example.com' in result.output
        assert db.session.query(Post).count() == 0
