"""Workflow API routes."""

from flask import Blueprint, request

from api.common import success
from services.authorization_service import permission_required
from services.webhook_service import WebhookService
from services.workflows import workflow_registry

workflows_api = Blueprint('workflows', __name__, url_prefix='/workflows')


@workflows_api.route('', methods=['GET'])
@permission_required('webhooks.view')
def list_workflows():
    """
    List workflows.

    Query Parameters:
        enabled: ``1`` to list enabled workflows only
    """
    enabled_only = request.args.get('enabled', '').lower() in ('1', 'true', 'yes')
    workflows = workflow_registry.list_enabled() if enabled_only else workflow_registry.list()
    return success([workflow.to_dict() for workflow in workflows])


@workflows_api.route('/<string:workflow_id>', methods=['GET'])
@permission_required('webhooks.view')
def get_workflow(workflow_id: str):
    return success(workflow_registry.get(workflow_id).to_dict())


@workflows_api.route('/<string:workflow_id>/deliveries', methods=['GET'])
@permission_required('webhooks.view')
def list_workflow_deliveries(workflow_id: str):
    limit = request.args.get('limit', default=50, type=int)
    deliveries = WebhookService.list_workflow_deliveries(workflow_id, max(1, min(limit, 500)))
    return success([delivery.to_dict() for delivery in deliveries])
