"""
Webhook API routes for endpoint management and webhook testing.
"""

from flask import Blueprint, request

from api.common import load_json, success
from models.communication.webhook import Webhook
from services.authorization_service import permission_required
from services.webhook_service import EVENT_TYPES, WebhookService
from .schemas import webhook_schema, webhook_update_schema

webhooks_api = Blueprint('webhooks', __name__, url_prefix='/webhooks')


@webhooks_api.route('', methods=['GET'])
@permission_required('webhooks.view')
def list_webhooks():
    """List webhook endpoints (secrets are never returned)."""
    return success([webhook.to_dict() for webhook in WebhookService.list_webhooks()])


@webhooks_api.route('/events', methods=['GET'])
@permission_required('webhooks.view')
def list_event_types():
    return success(EVENT_TYPES)


@webhooks_api.route('', methods=['POST'])
@permission_required('webhooks.edit')
def create_webhook():
    """
    Create a webhook endpoint.

    Returns:
        201 CREATED: The endpoint
        400 BAD REQUEST: Invalid URL or unknown event types
    """
    data = load_json(webhook_schema)
    webhook = WebhookService.create_webhook(**data)
    return success(webhook.to_dict(), 201)


@webhooks_api.route('/<int:webhook_id>', methods=['GET'])
@permission_required('webhooks.view')
def get_webhook(webhook_id: int):
    return success(Webhook.get_or_404(webhook_id, "Webhook not found").to_dict())


@webhooks_api.route('/<int:webhook_id>', methods=['PATCH', 'PUT'])
@permission_required('webhooks.edit')
def update_webhook(webhook_id: int):
    data = load_json(webhook_update_schema)
    return success(WebhookService.update_webhook(webhook_id, **data).to_dict())


@webhooks_api.route('/<int:webhook_id>', methods=['DELETE'])
@permission_required('webhooks.delete')
def delete_webhook(webhook_id: int):
    WebhookService.delete_webhook(webhook_id)
    return success(None, message="Webhook deleted")


@webhooks_api.route('/<int:webhook_id>/test', methods=['POST'])
@permission_required('webhooks.edit')
def send_test(webhook_id: int):
    """Deliver a signed ``webhook.test`` event synchronously and return the delivery."""
    delivery = WebhookService.send_test(webhook_id)
    return success(delivery.to_dict() if delivery is not None else None)


@webhooks_api.route('/<int:webhook_id>/deliveries', methods=['GET'])
@permission_required('webhooks.view')
def list_deliveries(webhook_id: int):
    limit = request.args.get('limit', default=50, type=int)
    deliveries = WebhookService.list_deliveries(webhook_id, max(1, min(limit, 500)))
    return success([delivery.to_dict() for delivery in deliveries])
