"""
Form Service for the CMS.

Forms are defined in code. Public submissions are validated against the
form's fields, stored as FormSubmission rows (attributed to the A/B
variation of the post they were sent from) and announced with the
``form.submitted`` webhook event.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.analytics.form_submission import FormSubmission
from models.content.post import Post
from core.exceptions import NotFoundError, ValidationError
from core.utils.string import is_valid_email, strip_tags
from services.webhook_service import EventType, WebhookService

logger = logging.getLogger(__name__)


@dataclass
class FormField:
    """One input of a form."""
    slug: str
    type: str = 'text'
    required: bool = False
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'slug': self.slug,
            'type': self.type,
            'required': self.required,
            'label': self.label or self.slug.replace('_', ' ').title(),
        }


@dataclass
class FormDefinition:
    """A code-first form."""
    slug: str
    title: str
    fields: List[FormField] = field(default_factory=list)
    success_message: str = 'Thank you!'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'slug': self.slug,
            'title': self.title,
            'fields': [f.to_dict() for f in self.fields],
            'success_message': self.success_message,
        }


class FormRegistry:
    """Registry of form definitions."""

    def __init__(self) -> None:
        self._forms: Dict[str, FormDefinition] = {}

    def register(self, form: FormDefinition) -> None:
        if form.slug in self._forms:
            raise ValueError(f"Form '{form.slug}' is already registered")
        self._forms[form.slug] = form

    def get(self, slug: str) -> FormDefinition:
        form = self._forms.get(slug)
        if form is None:
            raise NotFoundError(f"Form '{slug}' not found")
        return form

    def list(self) -> List[FormDefinition]:
        return list(self._forms.values())


BUILTIN_FORMS = [
    FormDefinition(
        slug='contact',
        title='Contact',
        fields=[
            FormField('name', 'text', required=True),
            FormField('email', 'email', required=True),
            FormField('message', 'textarea', required=True),
        ],
        success_message='Thanks for reaching out. We will get back to you soon.',
    ),
    FormDefinition(
        slug='newsletter',
        title='Newsletter',
        fields=[
            FormField('email', 'email', required=True),
            FormField('name', 'text'),
        ],
        success_message='You are subscribed.',
    ),
]


def _build_default_registry() -> FormRegistry:
    registry = FormRegistry()
    for form in BUILTIN_FORMS:
        registry.register(form)
    return registry


form_registry = _build_default_registry()


def validate_submission(form: FormDefinition, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate and clean submitted values.

    Unknown keys are dropped and text values are stripped of HTML.

    Returns:
        Dict[str, Any]: Cleaned values keyed by field slug

    Raises:
        ValidationError: 400 with per-field messages in ``meta.errors``
    """
    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}
    for form_field in form.fields:
        value = data.get(form_field.slug)
        if isinstance(value, str):
            value = strip_tags(value)
        if value in (None, '', []):
            if form_field.required:
                errors[form_field.slug] = 'This field is required.'
            continue
        if form_field.type == 'email' and not is_valid_email(str(value)):
            errors[form_field.slug] = 'Enter a valid email address.'
            continue
        cleaned[form_field.slug] = value
    if errors:
        raise ValidationError("Form submission is invalid", meta={'errors': errors})
    return cleaned


class FormService:
    """Submission handling and listing."""

    @staticmethod
    def submit(slug: str, data: Dict[str, Any], request_meta: Optional[Dict[str, Any]] = None) -> FormSubmission:
        """
        Store a form submission.

        Args:
            slug: Form slug
            data: Submitted values
            request_meta: ``ip_address``, ``user_agent`` and the originating ``post_id``

        Returns:
            FormSubmission: The stored submission

        Raises:
            NotFoundError: Unknown form
            ValidationError: Invalid values
        """
        form = form_registry.get(slug)
        payload = validate_submission(form, data or {})
        meta = request_meta or {}

        post = db.session.get(Post, meta['post_id']) if meta.get('post_id') else None
        submission = FormSubmission(
            form_slug=form.slug,
            payload=payload,
            ip_address=meta.get('ip_address'),
            user_agent=(meta.get('user_agent') or '')[:255] or None,
            post_id=post.id if post is not None else None,
            ab_group_id=post.ab_group_id if post is not None else None,
            ab_variation=post.ab_variation if post is not None else None,
        )
        try:
            db.session.add(submission)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to store %s submission: %s", slug, e)
            raise

        logger.info("Stored %s form submission %s", slug, submission.id)
        WebhookService.dispatch(EventType.FORM_SUBMITTED, submission.to_dict())
        return submission

    @staticmethod
    def list_submissions(slug: Optional[str] = None, page: int = 1,
                         per_page: Optional[int] = None) -> Dict[str, Any]:
        query = FormSubmission.query
        if slug:
            query = query.filter_by(form_slug=slug)
        query = query.order_by(FormSubmission.created_at.desc(), FormSubmission.id.desc())
        return FormSubmission.paginate_query(query, page=page, per_page=per_page)

    @staticmethod
    def export_csv(slug: str) -> str:
        """Every submission of a form as CSV, one column per form field."""
        form = form_registry.get(slug)
        columns = [f.slug for f in form.fields]
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(['id', 'created_at'] + columns + ['post_id', 'ab_variation'])
        rows = FormSubmission.query.filter_by(form_slug=slug).order_by(FormSubmission.id.asc()).all()
        for row in rows:
            payload = row.payload or {}
            writer.writerow(
                [row.id, row.created_at.isoformat() if row.created_at else '']
                + [payload.get(column, '') for column in columns]
                + [row.post_id or '', row.ab_variation or '']
            )
        return output.getvalue()
