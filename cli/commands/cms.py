"""
Content management commands for the CMS CLI.

This module provides the ``flask cms`` command group: database setup and
seeding, user creation, scheduled publishing (one-shot and as a polling
process), revision pruning, registry inspection and canonical JSON
import/export of posts.
"""

import json
import logging
from typing import Optional

import click
from flask import current_app
from flask.cli import AppGroup
from sqlalchemy import text

from extensions import db
from core.exceptions import CmsError
from models.auth.user import User

logger = logging.getLogger(__name__)

cms_cli = AppGroup('cms', help='Content management commands')


def _user_by_email(email: Optional[str]):

    if not email:
        return None
    user = User.query.filter_by(email=email.strip().lower()).first()
    if user is None:
        raise click.ClickException(f"No user with email {email}")
    return user


@cms_cli.command('init-db')
@click.option('--seed/--no-seed', default=False, help='Seed locales and URL patterns')
def init_db(seed: bool) -> None:
    """
    Create database tables and optionally seed data.

    For incremental schema changes use ``flask db migrate`` / ``flask db upgrade``.

    Examples:
        $ flask cms init-db --seed
    """
    import models  # noqa: F401

    try:
        db.create_all()
        db.session.execute(text('SELECT 1'))
        if seed:
            _seed()
    except CmsError as e:
        raise click.ClickException(e.message)
    click.echo('Database initialized successfully')
    logger.info("Database initialized in %s environment", current_app.config.get('ENVIRONMENT'))


def _seed() -> int:
    from services.locale_service import LocaleService
    from services.post_types import post_type_registry
    from services.url_pattern_service import UrlPatternService

    LocaleService.sync_from_config()
    created = 0
    for post_type in post_type_registry.types():
        created += len(UrlPatternService.ensure_defaults_for_post_type(post_type))
    return created


@cms_cli.command('seed')
@click.option('--admin-email', default=None, help='Create an admin account with this email')
@click.option('--admin-password', default=None, help='Password of the admin account')
def seed(admin_email: Optional[str], admin_password: Optional[str]) -> None:
    """
    Seed locales, default URL patterns and optionally an admin account.

    Examples:
        $ flask cms seed --admin-email=admin@example.com --admin-password=change-me-now
    """
    from services.auth_service import AuthService

    patterns = _seed()
    click.echo(f'Created {patterns} URL pattern(s)')

    if admin_email:
        if not admin_password:
            raise click.UsageError('--admin-password is required with --admin-email')
        if User.query.filter_by(email=admin_email.strip().lower()).first() is not None:
            click.echo(f'Admin {admin_email} already exists')
        else:
            try:
                AuthService.create_user(admin_email, admin_password, role=User.ROLE_ADMIN)
            except CmsError as e:
                raise click.ClickException(e.message)
            click.echo(f'Created admin {admin_email}')


@cms_cli.command('create-user')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(User.VALID_ROLES),
              default='editor', show_default=True)
@click.option('--name', 'full_name', default=None, help='Full name')
def create_user(email: str, password: str, role: str, full_name: Optional[str]) -> None:
    """
    Create a user account.

    Examples:
        $ flask cms create-user --email=editor@example.com --role=editor
    """
    from services.auth_service import AuthService

    try:
        user = AuthService.create_user(email, password, role=role, full_name=full_name)
    except CmsError as e:
        raise click.ClickException(e.message)
    click.echo(f'User {user.email} created with role {user.role}')


@cms_cli.command('publish-scheduled')
def publish_scheduled() -> None:
    """
    Publish every scheduled post whose time has come (for cron).
    """
    from services.post_service import PostService

    published = PostService.publish_scheduled_posts()
    for post in published:
        click.echo(f'Published post {post.id} ({post.locale}/{post.slug})')
    click.echo(f'{len(published)} post(s) published')


@cms_cli.command('scheduler')
@click.option('--interval', type=float, default=None,
              help='Seconds between polls (defaults to SCHEDULER_INTERVAL_SECONDS)')
@click.option('--once', is_flag=True, help='Run a single pass and exit')
def scheduler(interval: Optional[float], once: bool) -> None:
    """
    Run the scheduled publisher until interrupted.
    """
    from core.scheduler import ScheduledPublisher

    publisher = ScheduledPublisher(current_app._get_current_object(), interval)
    if once:
        click.echo(f'{publisher.run_once()} post(s) published')
        return

    publisher.start()
    click.echo(f'Scheduled publisher running every {publisher.interval}s (Ctrl+C to stop)')
    try:
        publisher.wait()
    except KeyboardInterrupt:
        click.echo('Stopping scheduled publisher')
    finally:
        publisher.stop()
    click.echo(f'Published {publisher.published} post(s) in {publisher.runs} run(s)')


@cms_cli.command('prune-revisions')
@click.option('--limit', type=int, default=None, help='Revisions to keep per post and mode')
def prune_revisions(limit: Optional[int]) -> None:
    """Delete revisions beyond the retention limit (CMS_REVISION_LIMIT)."""
    from services.revision_service import RevisionService

    removed = RevisionService.prune_all(limit)
    click.echo(f'Removed {removed} revision(s)')


@cms_cli.command('module-types')
@click.option('--post-type', default=None, help='Only modules allowed on this post type')
@click.option('--json', 'as_json', is_flag=True, help='Print full definitions as JSON')
def module_types(post_type: Optional[str], as_json: bool) -> None:
    """List registered module types."""
    from services.module_registry import module_registry

    configs = module_registry.for_post_type(post_type) if post_type else module_registry.configs()
    if as_json:
        click.echo(json.dumps([c.to_dict() for c in configs], indent=2))
        return
    for config in configs:
        click.echo(f"{config.type:<20} {', '.join(config.allowed_scopes)}")


@cms_cli.command('export-post')
@click.argument('post_id', type=int)
@click.option('--mode', default='publish', show_default=True,
              type=click.Choice(['publish', 'review', 'ai-review']))
@click.option('--output', '-o', type=click.Path(dir_okay=False, writable=True), default=None,
              help='Write to a file instead of stdout')
def export_post(post_id: int, mode: str, output: Optional[str]) -> None:
    """Export a post as canonical JSON."""
    from services.post_service import PostService
    from services.serializer_service import SerializerService

    try:
        post = PostService.get_post(post_id)
    except CmsError as e:
        raise click.ClickException(e.message)
    data = SerializerService.dumps(SerializerService.serialize(post, mode))
    if output:
        with open(output, 'w', encoding='utf-8') as handle:
            handle.write(data)
        click.echo(f'Exported post {post_id} to {output}')
    else:
        click.echo(data)


@cms_cli.command('import-post')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--replace', 'replace_id', type=int, default=None,
              help='Replace the content of this post instead of creating one')
@click.option('--user', 'user_email', default=None, help='Email of the acting user')
def import_post(path: str, replace_id: Optional[int], user_email: Optional[str]) -> None:
    """Create (or replace) a post from a canonical JSON file."""
    from services.post_service import PostService
    from services.serializer_service import SerializerService

    with open(path, encoding='utf-8') as handle:
        try:
            data = json.load(handle)
        except ValueError as e:
            raise click.ClickException(f'Invalid JSON: {e}')

    user = _user_by_email(user_email)
    try:
        if replace_id is not None:
            post = SerializerService.import_replace(PostService.get_post(replace_id), data, user)
        else:
            post = SerializerService.import_create(data, user)
    except CmsError as e:
        raise click.ClickException(e.message)
    click.echo(f'Imported post {post.id} ({post.locale}/{post.slug})')
