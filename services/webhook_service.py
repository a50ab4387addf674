"""
Webhook Service for the CMS.

This service centralizes the business logic for managing webhook endpoints
and delivering events to them. Deliveries are signed with HMAC-SHA256 when
the endpoint has a secret, retried up to the endpoint's attempt limit and
logged as WebhookDelivery rows. Code-defined workflows (``services.workflows``)
that match an event go through the same delivery path. Delivery failures are
logged and never propagate to the operation that triggered the event.
"""

import hashlib
import hmac
import json
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

import requests
from flask import Flask, current_app
from requests.exceptions import RequestException
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.base import utcnow
from models.communication.webhook import Webhook, WebhookDelivery
from core.exceptions import CmsError, NotFoundError
from services.workflows import workflow_registry

logger = logging.getLogger(__name__)


class EventType:
    """Supported webhook event types."""

    POST_CREATED = 'post.created'
    POST_UPDATED = 'post.updated'
    POST_PUBLISHED = 'post.published'
    POST_UNPUBLISHED = 'post.unpublished'
    POST_DELETED = 'post.deleted'
    POST_RESTORED = 'post.restored'
    FORM_SUBMITTED = 'form.submitted'
    MEDIA_UPLOADED = 'media.uploaded'

    WILDCARD = '*'


EVENT_TYPES = [
    EventType.POST_CREATED,
    EventType.POST_UPDATED,
    EventType.POST_PUBLISHED,
    EventType.POST_UNPUBLISHED,
    EventType.POST_DELETED,
    EventType.POST_RESTORED,
    EventType.FORM_SUBMITTED,
    EventType.MEDIA_UPLOADED,
]


def generate_webhook_signature(payload: str, secret: str) -> str:
    """
    Generate HMAC signature for webhook payload verification.

    Args:
        payload: The webhook payload as a string
        secret: The shared secret of the webhook

    Returns:
        str: Header value ``sha256=<hexdigest>``
    """
    if not secret:
        raise ValueError("Secret is required")
    digest = hmac.new(secret.encode('utf-8'), payload.encode('utf-8'), hashlib.sha256).hexdigest()
    return f'sha256={digest}'


def verify_webhook_signature(payload: str, signature: str, secret: str) -> bool:
    """Constant time comparison of a received signature header."""
    try:
        expected = generate_webhook_signature(payload, secret)
    except ValueError:
        return False
    return hmac.compare_digest(expected, signature or '')


class WebhookService:
    """
    Provides methods for managing and delivering webhooks.
    """

    @staticmethod
    def validate_webhook_data(url: Optional[str], events: Optional[List[str]]) -> None:
        """
        Raises:
            CmsError: 400 for a non http(s) URL or unknown events
        """
        parsed = urlparse(url or '')
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise CmsError("Webhook URL must be an absolute http(s) URL", status_code=400)
        unknown = [e for e in (events or []) if e != EventType.WILDCARD and e not in EVENT_TYPES]
        if unknown:
            raise CmsError(f"Unknown webhook events: {', '.join(unknown)}", status_code=400,
                           meta={'allowed': EVENT_TYPES + [EventType.WILDCARD]})

    @staticmethod
    def list_webhooks() -> List[Webhook]:
        return Webhook.query.order_by(Webhook.created_at.desc()).all()

    @staticmethod
    def create_webhook(name: str, url: str, events: Optional[List[str]] = None,
                       secret: Optional[str] = None, active: bool = True,
                       headers: Optional[Dict[str, str]] = None, timeout_ms: Optional[int] = None,
                       max_retries: Optional[int] = None) -> Webhook:
        """
        Create a webhook endpoint.

        Args:
            name: Display name
            url: Target URL
            events: Events to subscribe to (defaults to all)
            secret: Optional signing secret
            active: Whether deliveries are sent
            headers: Extra request headers
            timeout_ms: Request timeout override
            max_retries: Attempt limit override

        Returns:
            Webhook: The new endpoint
        """
        events = list(events) if events else [EventType.WILDCARD]
        WebhookService.validate_webhook_data(url, events)
        webhook = Webhook(name=name, url=url, events=events, secret=secret, active=active,
                          headers=headers, timeout_ms=timeout_ms, max_retries=max_retries)
        try:
            db.session.add(webhook)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to create webhook %s: %s", name, e)
            raise
        logger.info("Created webhook %s -> %s", webhook.id, url)
        return webhook

    @staticmethod
    def update_webhook(webhook_id: int, **changes) -> Webhook:
        webhook = Webhook.get_or_404(webhook_id, "Webhook not found")
        if 'url' in changes or 'events' in changes:
            WebhookService.validate_webhook_data(changes.get('url', webhook.url),
                                                 changes.get('events', webhook.events))
        if 'events' in changes:
            changes['events'] = list(changes['events'] or [])
        if 'headers' in changes:
            changes['headers'] = dict(changes['headers'] or {})
        webhook.update(**changes)
        return webhook

    @staticmethod
    def delete_webhook(webhook_id: int) -> None:
        Webhook.get_or_404(webhook_id, "Webhook not found").delete()

    @staticmethod
    def list_deliveries(webhook_id: int, limit: int = 50) -> List[WebhookDelivery]:
        webhook = Webhook.get_or_404(webhook_id, "Webhook not found")
        limit = max(1, min(int(limit or 50), 200))
        return webhook.deliveries.order_by(WebhookDelivery.id.desc()).limit(limit).all()

    @staticmethod
    def build_payload(event: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'event': event,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'data': data,
        }

    @staticmethod
    def dispatch(event: str, data: Dict[str, Any]) -> int:
        """
        Deliver an event to every active webhook subscribed to it and to every
        enabled workflow with a matching trigger.

        Delivery runs in a background thread unless ``WEBHOOKS_ASYNC`` is
        false. Errors are logged, never raised.

        Args:
            event: Event name
            data: Event data

        Returns:
            int: Number of webhooks and workflows the event was handed to
        """
        try:
            if not current_app.config.get('WEBHOOKS_ENABLED', True):
                return 0
            targets = [w.id for w in Webhook.query.filter_by(active=True).all() if w.subscribes_to(event)]
            workflows = [w.id for w in workflow_registry.for_trigger(
                event,
                post_type=data.get('type') if event.startswith('post.') else None,
                form_slug=data.get('form_slug') if event.startswith('form.') else None,
            )]
            if not targets and not workflows:
                return 0

            payload = WebhookService.build_payload(event, data)
            if current_app.config.get('WEBHOOKS_ASYNC', True):
                app = current_app._get_current_object()
                thread = threading.Thread(
                    target=WebhookService._deliver_in_thread,
                    args=(app, targets, workflows, event, payload),
                    daemon=True
                )
                thread.start()
            else:
                WebhookService._deliver_all(targets, workflows, event, payload)
            return len(targets) + len(workflows)
        except Exception as e:
            logger.error("Failed to dispatch webhook event %s: %s", event, e)
            return 0

    @staticmethod
    def _deliver_all(webhook_ids: List[int], workflow_ids: List[str], event: str,
                     payload: Dict[str, Any]) -> None:
        for webhook_id in webhook_ids:
            WebhookService.deliver(webhook_id, event, payload)
        for workflow_id in workflow_ids:
            WebhookService.deliver_workflow(workflow_id, event, payload)

    @staticmethod
    def _deliver_in_thread(app: Flask, webhook_ids: List[int], workflow_ids: List[str], event: str,
                           payload: Dict[str, Any]) -> None:
        with app.app_context():
            WebhookService._deliver_all(webhook_ids, workflow_ids, event, payload)

    @staticmethod
    def _send(url: str, event: str, payload: Dict[str, Any], body: str, headers: Dict[str, str],
              timeout_ms: int, max_attempts: int, backoff: float, owner: Dict[str, Any],
              on_attempt: Optional[Callable[[WebhookDelivery], None]] = None) -> WebhookDelivery:
        """
        POST ``body`` to ``url`` until it succeeds or ``max_attempts`` is
        reached, committing one WebhookDelivery row per attempt.

        ``owner`` holds the ``webhook_id`` or ``workflow_id`` of the rows.
        The wait between attempts doubles from ``backoff`` seconds.
        """
        delivery = None
        for attempt in range(1, max_attempts + 1):
            delivery = WebhookDelivery(event=event, payload=payload, attempt=attempt,
                                       status=WebhookDelivery.STATUS_FAILED, **owner)
            start_time = time.time()
            try:
                response = requests.post(url, data=body, headers=headers, timeout=timeout_ms / 1000.0)
                delivery.duration_ms = int((time.time() - start_time) * 1000)
                delivery.response_status = response.status_code
                delivery.response_body = (response.text or '')[:1000]
                if 200 <= response.status_code < 300:
                    delivery.status = WebhookDelivery.STATUS_SUCCESS
                else:
                    delivery.error = f"HTTP {response.status_code}"
            except RequestException as e:
                delivery.duration_ms = int((time.time() - start_time) * 1000)
                delivery.error = str(e)[:500]

            db.session.add(delivery)
            if on_attempt is not None:
                on_attempt(delivery)
            db.session.commit()

            if delivery.status == WebhookDelivery.STATUS_SUCCESS:
                break
            logger.warning("Delivery of %s to %s failed (attempt %d/%d): %s",
                           event, url, attempt, max_attempts, delivery.error)
            if attempt < max_attempts and backoff > 0:
                time.sleep(min(backoff * 2 ** (attempt - 1), 30))
        return delivery

    @staticmethod
    def deliver(webhook_id: int, event: str, payload: Dict[str, Any]) -> Optional[WebhookDelivery]:
        """
        Send one event to one webhook with retries, recording every attempt.

        Args:
            webhook_id: Target webhook
            event: Event name
            payload: Full JSON payload

        Returns:
            Optional[WebhookDelivery]: The last attempt, None if the webhook vanished
        """
        try:
            webhook = db.session.get(Webhook, webhook_id)
            if webhook is None:
                logger.error("Webhook %s not found for delivery", webhook_id)
                return None

            body = json.dumps(payload, default=str)
            headers = {
                'Content-Type': 'application/json',
                'User-Agent': 'CMS-Webhooks/1.0',
                'X-Webhook-Event': event,
                'X-Webhook-ID': str(webhook.id),
            }
            headers.update(webhook.headers or {})
            if webhook.secret:
                headers['X-Webhook-Signature'] = generate_webhook_signature(body, webhook.secret)

            def record(delivery: WebhookDelivery) -> None:
                webhook.last_triggered_at = utcnow()
                webhook.last_status = delivery.status

            return WebhookService._send(
                webhook.url, event, payload, body, headers,
                timeout_ms=webhook.timeout_ms or current_app.config.get('WEBHOOK_TIMEOUT_MS', 5000),
                max_attempts=max(1, webhook.max_retries or current_app.config.get('WEBHOOK_MAX_RETRIES', 3)),
                backoff=float(current_app.config.get('WEBHOOK_RETRY_BACKOFF_SECONDS', 1.0)),
                owner={'webhook_id': webhook.id},
                on_attempt=record,
            )
        except Exception as e:
            logger.error("Error processing webhook delivery to %s: %s", webhook_id, e)
            db.session.rollback()
            return None

    @staticmethod
    def deliver_workflow(workflow_id: str, event: str, payload: Dict[str, Any]) -> Optional[WebhookDelivery]:
        """
        Send one event to a workflow's webhook, recording every attempt.

        The payload passes through the workflow's ``transform_payload`` and
        is retried only when the workflow sets ``retry_on_failure``.

        Returns:
            Optional[WebhookDelivery]: The last attempt, None if the workflow
            is unknown, has no URL or its transform failed
        """
        try:
            workflow = workflow_registry.get(workflow_id)
            settings = workflow.webhook
            if settings is None or not settings.url:
                logger.warning("Workflow %s has no webhook URL, skipping %s", workflow_id, event)
                return None

            body = json.dumps(workflow.build_body(payload), default=str)
            headers = {
                'Content-Type': 'application/json',
                'User-Agent': 'CMS-Workflows/1.0',
                'X-Webhook-Event': event,
                'X-Workflow-ID': workflow.id,
            }
            headers.update(settings.headers or {})
            if settings.secret:
                headers['X-Webhook-Signature'] = generate_webhook_signature(body, settings.secret)

            return WebhookService._send(
                settings.url, event, payload, body, headers,
                timeout_ms=settings.timeout_ms,
                max_attempts=settings.max_attempts,
                backoff=settings.retry_delay_ms / 1000.0,
                owner={'workflow_id': workflow.id},
            )
        except Exception as e:
            logger.error("Error processing workflow delivery to %s: %s", workflow_id, e)
            db.session.rollback()
            return None

    @staticmethod
    def list_workflow_deliveries(workflow_id: str, limit: int = 50) -> List[WebhookDelivery]:
        workflow = workflow_registry.get(workflow_id)
        limit = max(1, min(int(limit or 50), 200))
        return WebhookDelivery.query.filter_by(workflow_id=workflow.id) \
            .order_by(WebhookDelivery.id.desc()).limit(limit).all()

    @staticmethod
    def send_test(webhook_id: int) -> Optional[WebhookDelivery]:
        """Deliver a synthetic event to a webhook synchronously."""
        webhook = Webhook.get_or_404(webhook_id, "Webhook not found")
        payload = WebhookService.build_payload('webhook.test', {'webhook_id': webhook.id, 'message': 'Test delivery'})
        delivery = WebhookService.deliver(webhook.id, 'webhook.test', payload)
        if delivery is None:
            raise NotFoundError("Webhook not found")
        return delivery
