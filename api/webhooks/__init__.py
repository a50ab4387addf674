"""
Webhook API module for the CMS.

Webhooks notify external systems of content events (``post.created``,
``post.published``, ``form.submitted`` and so on). Payloads are signed with
the endpoint's secret in the ``X-Webhook-Signature`` header.

Key endpoints:
- /api/webhooks: Endpoint CRUD
- /api/webhooks/events: Available event types
- /api/webhooks/<id>/test: Send a signed test delivery
- /api/webhooks/<id>/deliveries: Delivery history
"""

from .routes import webhooks_api

__all__ = ['webhooks_api']
