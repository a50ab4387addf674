"""
Communication models package for the CMS.

Webhook endpoints and their delivery log.
"""

from .webhook import Webhook, WebhookDelivery

__all__ = ['Webhook', 'WebhookDelivery']
