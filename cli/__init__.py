"""
CLI package for the CMS.

Commands are attached to the ``flask`` command by the application
factory, so they run inside the application context::

    $ flask cms init-db --seed
    $ flask cms create-user --email=admin@example.com --role=admin
    $ flask cms scheduler
"""

import logging

from flask import Flask

from .commands import cms_cli

logger = logging.getLogger(__name__)


def register_cli_commands(app: Flask) -> None:
    """
    Register the CLI command groups on the application.

    Args:
        app: The Flask application instance
    """
    app.cli.add_command(cms_cli)
    logger.debug("CLI commands registered")


__all__ = ['register_cli_commands', 'cms_cli']
