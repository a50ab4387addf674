"""
Base model definitions for the CMS.

This module provides the base model class and mixins that are used throughout
the application's data model layer. It establishes common functionality,
consistent patterns, and shared behaviors that all models can inherit.

Key components:
- BaseModel: Abstract base class with CRUD operations and serialization
- TimestampMixin: Adds automatic timestamp tracking for all models
- SoftDeleteMixin: Adds a deleted_at column and trash helpers

These base classes implement the Active Record pattern through SQLAlchemy ORM,
promoting code reuse and ensuring consistent behavior across the data layer.
"""

from datetime import datetime, timezone
import logging
from typing import Dict, Any, Optional, Type, TypeVar, Union, cast
from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query

from extensions import db
from core.exceptions import NotFoundError

# Define TypeVar with proper constraints for type hinting
T_Model = TypeVar('T_Model', bound='BaseModel')


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _logger() -> logging.Logger:
    return current_app.logger if has_app_context() else logging.getLogger(__name__)


class TimestampMixin:
    """
    Mixin class that adds created and updated timestamps to models.

    The created_at timestamp is set once when the record is first created,
    while updated_at is automatically updated whenever the record is modified.

    Attributes:
        created_at: Datetime when the record was created
        updated_at: Datetime when the record was last updated
    """

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True
    )

    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


class SoftDeleteMixin:
    """
    Mixin class that adds soft deletion to models.

    Soft deleted rows keep their data and relationships but are hidden from
    the default listings. ``restore`` clears the marker again.

    Attributes:
        deleted_at: Datetime when the record was moved to the trash
    """

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self, commit: bool = True) -> None:
        """Mark the record as deleted without removing the row."""
        self.deleted_at = utcnow()
        if commit:
            db.session.commit()

    def restore(self, commit: bool = True) -> None:
        """Clear the soft delete marker."""
        self.deleted_at = None
        if commit:
            db.session.commit()

    @classmethod
    def active(cls) -> Query:
        """Query limited to rows that are not soft deleted."""
        return cls.query.filter(cls.deleted_at.is_(None))


class BaseModel(db.Model, TimestampMixin):
    """
    Abstract base model that provides common functionality for all models.

    This class should be used as the base for all models in the application.
    It provides common CRUD operations, serialization, and utility methods.

    Attributes:
        __abstract__: SQLAlchemy flag marking this as an abstract class

    Class Methods:
        get_or_404: Retrieve a model instance or raise NotFoundError
        paginate_query: Paginate a query with metadata

    Instance Methods:
        update: Update instance with new attribute values
        delete: Delete this instance from the database
        to_dict: Convert instance to a dictionary for serialization
    """
    __abstract__ = True

    @classmethod
    def get_or_404(cls: Type[T_Model], instance_id: Union[int, str, None],
                   description: Optional[str] = None) -> T_Model:
        """
        Retrieve an instance by its primary key or raise a 404 error.

        Args:
            instance_id: Primary key value to look up
            description: Optional custom message for the 404 error

        Returns:
            T_Model: Model instance

        Raises:
            NotFoundError: If instance not found
        """
        instance = db.session.get(cls, instance_id) if instance_id is not None else None
        if instance is None:
            raise NotFoundError(description or f"{cls.__name__} with ID {instance_id} not found")
        return cast(T_Model, instance)

    def update(self, commit: bool = True, **kwargs) -> bool:
        """
        Update the instance with new attribute values.

        Args:
            commit: Whether to commit the transaction immediately (default: True)
            **kwargs: Attribute values to update

        Returns:
            bool: True if anything changed

        Raises:
            SQLAlchemyError: If database error occurs during update
        """
        fields_changed = []
        for key, value in kwargs.items():
            if hasattr(self, key):
                if getattr(self, key) != value:
                    fields_changed.append(key)
                    setattr(self, key, value)
            else:
                _logger().warning("Attempted to update non-existent attribute %s on %s",
                                  key, self.__class__.__name__)

        if not fields_changed:
            return False

        try:
            if commit:
                db.session.commit()
            return True
        except SQLAlchemyError as e:
            db.session.rollback()
            _logger().error("Failed to update %s: %s", self.__class__.__name__, str(e))
            raise

    def delete(self, commit: bool = True) -> bool:
        """
        Delete the instance from the database.

        Returns:
            bool: True if deletion was successful

        Raises:
            SQLAlchemyError: If database error occurs during deletion
        """
        try:
            db.session.delete(self)
            if commit:
                db.session.commit()
            return True
        except SQLAlchemyError as e:
            db.session.rollback()
            _logger().error("Failed to delete %s: %s", self.__class__.__name__, str(e))
            raise

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the instance to a dictionary for serialization.

        Returns:
            Dict[str, Any]: Column values, datetimes as ISO strings
        """
        result = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)

            # Handle datetime objects for JSON serialization
            if isinstance(value, datetime):
                value = value.isoformat()

            result[column.name] = value
        return result

    @classmethod
    def paginate_query(cls, query: Query, page: int = 1, per_page: Optional[int] = None) -> Dict[str, Any]:
        """
        Paginate an arbitrary query of this model.

        Args:
            query: Query to paginate
            page: Page number (1-indexed)
            per_page: Number of items per page, capped by CMS_PAGINATION_MAX

        Returns:
            Dict[str, Any]: Paginated results with items and metadata
        """
        default = current_app.config.get('CMS_PAGINATION_DEFAULT', 20) if has_app_context() else 20
        maximum = current_app.config.get('CMS_PAGINATION_MAX', 1000) if has_app_context() else 1000

        page = max(1, int(page or 1))
        per_page = int(per_page or default)
        per_page = max(1, min(per_page, maximum))

        total_items = query.count()
        total_pages = (total_items + per_page - 1) // per_page
        items = query.offset((page - 1) * per_page).limit(per_page).all()

        return {
            "items": items,
            "meta": {
                "page": page,
                "per_page": per_page,
                "total_items": total_items,
                "total_pages": total_pages,
                "has_next": page < total_pages,
                "has_prev": page > 1,
            }
        }
