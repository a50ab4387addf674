"""
Data models package for the CMS.

This package defines the application's data model layer using SQLAlchemy ORM,
providing a clean, Pythonic interface to the underlying database. It includes:

- A base model implementation with common functionality for all models
- Mixin classes for shared behaviors like timestamp tracking and soft deletion
- Domain models grouped in sub-packages (auth, content, communication,
  analytics, agents)

The models implement the Active Record pattern through SQLAlchemy, where each model
instance represents a row in the database and provides methods for CRUD operations.
"""

import logging

from extensions import db

# Set up package logger
logger = logging.getLogger(__name__)

# Import base classes first to avoid circular imports
from .base import BaseModel, TimestampMixin, SoftDeleteMixin, utcnow

# Import models by domain
# Auth models
from .auth.user import User

# Content models
from .content import (
    Post, ModuleInstance, PostModule, PostRevision, Taxonomy, TaxonomyTerm,
    post_taxonomy_terms, PostCustomFieldValue, UrlPattern, UrlRedirect,
    Template, TemplateModule, Menu, MenuItem, Locale
)

# Communication models
from .communication.webhook import Webhook, WebhookDelivery

# Analytics models
from .analytics import FormSubmission, PostVariationView

# Agent models
from .agents import AgentExecution

__all__ = [
    # Base
    'db',
    'BaseModel',
    'TimestampMixin',
    'SoftDeleteMixin',
    'utcnow',

    # Auth
    'User',

    # Content
    'Post',
    'ModuleInstance',
    'PostModule',
    'PostRevision',
    'Taxonomy',
    'TaxonomyTerm',
    'post_taxonomy_terms',
    'PostCustomFieldValue',
    'UrlPattern',
    'UrlRedirect',
    'Template',
    'TemplateModule',
    'Menu',
    'MenuItem',
    'Locale',

    # Communication
    'Webhook',
    'WebhookDelivery',

    # Analytics
    'FormSubmission',
    'PostVariationView',

    # Agents
    'AgentExecution',
]
