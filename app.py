"""
Main application entry point for the CMS.

This module serves as the WSGI entry point (``gunicorn app:app``) and as the
target of the ``flask`` command (``FLASK_APP=app``). The application is built
by the factory in ``core.factory``; configuration is selected from the
ENVIRONMENT variable and validated by the config classes.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from core.factory import create_app


def register_shell_context(flask_app) -> None:
    """Expose the database and the main models in ``flask shell``."""

    @flask_app.shell_context_processor
    def make_shell_context():
        from models.auth.user import User
        from models.content.module import ModuleInstance, PostModule
        from models.content.post import Post

        return {'db': db, 'User': User, 'Post': Post,
                'ModuleInstance': ModuleInstance, 'PostModule': PostModule}


# Initialize application
try:
    app = create_app()
    register_shell_context(app)
    app.logger.info("Application initialized successfully (version: %s)", app.config.get('VERSION', '1.0.0'))
except SQLAlchemyError as e:
    logging.critical("Application initialization failed: %s", e)
    raise
except ValueError as e:
    logging.critical("Application configuration invalid: %s", e)
    raise

if __name__ == '__main__':
    app.run()
