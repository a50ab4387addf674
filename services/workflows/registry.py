"""
Code-first workflow definitions.

A workflow is a webhook-type integration declared in code. It subscribes to
CMS events through triggers, optionally restricted to post types or form
slugs, and is delivered through the webhook delivery path with its own URL,
secret, timeout and retry settings. A ``transform_payload`` callable can
reshape the event payload before it is sent (for example into a Slack
message).
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

TYPE_WEBHOOK = 'webhook'
VALID_TYPES = [TYPE_WEBHOOK]

DEFAULT_TIMEOUT_MS = 30000
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_MS = 1000
DEFAULT_TRIGGER_ORDER = 100


@dataclass
class WorkflowWebhook:
    """Where and how a workflow is delivered."""
    url: str
    secret: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    retry_on_failure: bool = False
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS

    @property
    def max_attempts(self) -> int:
        return max(1, self.retry_attempts) if self.retry_on_failure else 1


@dataclass
class WorkflowTrigger:
    """An event a workflow runs on."""
    event: str
    order: int = DEFAULT_TRIGGER_ORDER
    enabled: bool = True
    post_types: List[str] = field(default_factory=list)
    form_slugs: List[str] = field(default_factory=list)

    def matches(self, event: str, post_type: Optional[str] = None, form_slug: Optional[str] = None) -> bool:
        if not self.enabled or self.event != event:
            return False
        if event.startswith('post.') and post_type and self.post_types:
            return post_type in self.post_types
        if event.startswith('form.') and form_slug and self.form_slugs:
            return form_slug in self.form_slugs
        return True


@dataclass
class WorkflowDefinition:
    """Definition of a workflow."""
    id: str
    name: str
    type: str = TYPE_WEBHOOK
    description: str = ''
    enabled: bool = True
    webhook: Optional[WorkflowWebhook] = None
    triggers: List[WorkflowTrigger] = field(default_factory=list)
    transform_payload: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None

    def trigger_for(self, event: str, post_type: Optional[str] = None,
                    form_slug: Optional[str] = None) -> Optional[WorkflowTrigger]:
        for trigger in self.triggers:
            if trigger.matches(event, post_type, form_slug):
                return trigger
        return None

    def build_body(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.transform_payload is None:
            return payload
        return self.transform_payload(payload)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'type': self.type,
            'enabled': self.enabled,
            'url': self.webhook.url if self.webhook else None,
            'has_secret': bool(self.webhook and self.webhook.secret),
            'triggers': [
                {'event': t.event, 'order': t.order, 'enabled': t.enabled,
                 'post_types': list(t.post_types), 'form_slugs': list(t.form_slugs)}
                for t in self.triggers
            ],
            'transforms_payload': self.transform_payload is not None,
        }


class WorkflowRegistry:
    """Registry of workflow definitions."""

    def __init__(self) -> None:
        self._workflows: Dict[str, WorkflowDefinition] = {}

    def register(self, workflow: WorkflowDefinition) -> None:
        """
        Add a workflow.

        Raises:
            ValueError: For duplicate ids, unknown types, webhook workflows
                without webhook settings or workflows without triggers
        """
        if workflow.id in self._workflows:
            raise ValueError(f"Workflow '{workflow.id}' is already registered")
        if workflow.type not in VALID_TYPES:
            raise ValueError(f"Workflow '{workflow.id}' has invalid type '{workflow.type}'")
        if workflow.type == TYPE_WEBHOOK and workflow.webhook is None:
            raise ValueError(f"Workflow '{workflow.id}' is webhook type but has no webhook config")
        if not workflow.triggers:
            raise ValueError(f"Workflow '{workflow.id}' has no triggers")
        self._workflows[workflow.id] = workflow
        logger.debug("Registered workflow %s", workflow.id)

    def unregister(self, workflow_id: str) -> None:
        self._workflows.pop(workflow_id, None)

    def get(self, workflow_id: str) -> WorkflowDefinition:
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise NotFoundError(f"Workflow '{workflow_id}' not found")
        return workflow

    def list(self) -> List[WorkflowDefinition]:
        return list(self._workflows.values())

    def list_enabled(self) -> List[WorkflowDefinition]:
        return [w for w in self._workflows.values() if w.enabled]

    def for_trigger(self, event: str, post_type: Optional[str] = None,
                    form_slug: Optional[str] = None) -> List[WorkflowDefinition]:
        """
        Enabled workflows with an enabled trigger for ``event``.

        Post-type and form-slug restrictions on a trigger apply when the
        matching context value is given. Results are ordered by trigger order.
        """
        matched = []
        for workflow in self.list_enabled():
            trigger = workflow.trigger_for(event, post_type, form_slug)
            if trigger is not None:
                matched.append((trigger.order, workflow))
        return [workflow for _, workflow in sorted(matched, key=lambda item: item[0])]


def slack_message(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Render a ``post.published`` payload as a Slack message."""
    post = payload.get('data') or {}
    title = post.get('title') or 'Untitled'
    return {
        'text': f"New post published: {title}",
        'blocks': [{
            'type': 'section',
            'text': {
                'type': 'mrkdwn',
                'text': (f"*New Post Published*\n\n*Title:* {title}\n"
                         f"*Slug:* {post.get('slug') or 'N/A'}\n*Type:* {post.get('type') or 'N/A'}"),
            },
        }],
    }


BUILTIN_WORKFLOWS = [
    WorkflowDefinition(
        id='slack-notifier',
        name='Slack Notifier',
        description='Sends a Slack notification when a post is published',
        enabled=False,
        webhook=WorkflowWebhook(
            url=os.environ.get('SLACK_WEBHOOK_URL', ''),
            timeout_ms=10000,
            retry_on_failure=True,
        ),
        triggers=[WorkflowTrigger(event='post.published', order=10)],
        transform_payload=slack_message,
    ),
]


def _build_default_registry() -> WorkflowRegistry:
    registry = WorkflowRegistry()
    for workflow in BUILTIN_WORKFLOWS:
        registry.register(workflow)
    return registry


workflow_registry = _build_default_registry()
