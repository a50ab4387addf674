"""
Workflows for the CMS.

Workflows are code-defined webhook integrations that run on CMS events. They
are looked up by ``WebhookService.dispatch`` and delivered with the webhook
signing and retry logic.
"""

from .registry import (
    WorkflowDefinition, WorkflowRegistry, WorkflowTrigger, WorkflowWebhook, workflow_registry
)

__all__ = ['WorkflowDefinition', 'WorkflowRegistry', 'WorkflowTrigger', 'WorkflowWebhook', 'workflow_registry']
