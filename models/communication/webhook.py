"""
Database models for webhooks.

These models store webhook endpoints and the delivery log of the CMS's event
notification system.
"""

from typing import Any, Dict, List, Optional

from extensions import db
from models.base import BaseModel


class Webhook(BaseModel):
    """
    Webhook endpoint configuration.

    Attributes:
        name: Display name
        url: URL to send payloads to
        secret: Optional shared secret used to sign payloads
        events: Event names the endpoint subscribes to (``*`` matches all)
        active: Whether deliveries are sent
        headers: Extra HTTP headers sent with every delivery
        timeout_ms: Request timeout in milliseconds
        max_retries: Maximum number of delivery attempts
        last_triggered_at: Time of the most recent delivery
        last_status: Outcome of the most recent delivery
    """
    __tablename__ = 'webhooks'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    url = db.Column(db.String(512), nullable=False)
    secret = db.Column(db.String(255), nullable=True)
    events = db.Column(db.JSON, nullable=False, default=list)
    active = db.Column(db.Boolean, nullable=False, default=True)
    headers = db.Column(db.JSON, nullable=True)
    timeout_ms = db.Column(db.Integer, nullable=True)
    max_retries = db.Column(db.Integer, nullable=True)
    last_triggered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_status = db.Column(db.String(20), nullable=True)

    deliveries = db.relationship('WebhookDelivery', back_populates='webhook',
                                 lazy='dynamic', cascade='all, delete-orphan')

    def __init__(self, name: str, url: str, events: Optional[List[str]] = None,
                 secret: Optional[str] = None, active: bool = True,
                 headers: Optional[Dict[str, str]] = None, timeout_ms: Optional[int] = None,
                 max_retries: Optional[int] = None):
        self.name = name
        self.url = url
        self.events = list(events or [])
        self.secret = secret
        self.active = active
        self.headers = dict(headers or {})
        self.timeout_ms = timeout_ms
        self.max_retries = max_retries

    def subscribes_to(self, event: str) -> bool:
        events = self.events or []
        return '*' in events or event in events

    def to_dict(self, include_secret: bool = False) -> Dict[str, Any]:
        """Convert webhook to dictionary for API responses."""
        data = {
            'id': self.id,
            'name': self.name,
            'url': self.url,
            'events': self.events or [],
            'active': self.active,
            'headers': self.headers or {},
            'timeout_ms': self.timeout_ms,
            'max_retries': self.max_retries,
            'has_secret': bool(self.secret),
            'last_triggered_at': self.last_triggered_at.isoformat() if self.last_triggered_at else None,
            'last_status': self.last_status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_secret:
            data['secret'] = self.secret
        return data

    def __repr__(self) -> str:
        return f'<Webhook {self.id} {self.name}>'


class WebhookDelivery(BaseModel):
    """One delivery attempt of an event to a webhook endpoint or a code-defined workflow."""
    __tablename__ = 'webhook_deliveries'

    STATUS_SUCCESS = 'success'
    STATUS_FAILED = 'failed'

    id = db.Column(db.Integer, primary_key=True)
    webhook_id = db.Column(db.Integer, db.ForeignKey('webhooks.id', ondelete='CASCADE'),
                           nullable=True, index=True)
    workflow_id = db.Column(db.String(100), nullable=True, index=True)
    event = db.Column(db.String(100), nullable=False, index=True)
    payload = db.Column(db.JSON, nullable=True)
    response_status = db.Column(db.Integer, nullable=True)
    response_body = db.Column(db.Text, nullable=True)
    duration_ms = db.Column(db.Integer, nullable=True)
    attempt = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(20), nullable=False, default=STATUS_FAILED)
    error = db.Column(db.Text, nullable=True)

    webhook = db.relationship('Webhook', back_populates='deliveries')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'webhook_id': self.webhook_id,
            'workflow_id': self.workflow_id,
            'event': self.event,
            'payload': self.payload,
            'response_status': self.response_status,
            'response_body': self.response_body,
            'duration_ms': self.duration_ms,
            'attempt': self.attempt,
            'status': self.status,
            'error': self.error,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f'<WebhookDelivery {self.id} {self.event} #{self.attempt} {self.status}>'
