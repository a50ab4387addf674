"""Agent API routes."""

from flask import Blueprint, g, request
from marshmallow import fields, validate

from api.common import BaseSchema, load_json, success
from services.agents import AgentExecutor, agent_registry
from services.agents.registry import SCOPE_DROPDOWN, VALID_SCOPES
from services.authorization_service import permission_required
from services.post_service import PostService


class AgentRunSchema(BaseSchema):
    post_id = fields.Integer(required=True)
    scope = fields.String(load_default=SCOPE_DROPDOWN, validate=validate.OneOf(VALID_SCOPES))
    context = fields.String(allow_none=True, validate=validate.Length(max=5000))
    field_key = fields.String(allow_none=True)


agent_run_schema = AgentRunSchema()

agents_api = Blueprint('agents', __name__, url_prefix='/agents')


@agents_api.route('', methods=['GET'])
@permission_required('agents.view')
def list_agents():
    """
    List agents.

    Query Parameters:
        scope: Only agents available in this scope
        include_disabled: ``1`` to include disabled agents
    """
    scope = request.args.get('scope')
    if scope:
        agents = agent_registry.list_by_scope(scope)
    else:
        include_disabled = request.args.get('include_disabled', '').lower() in ('1', 'true', 'yes')
        agents = agent_registry.list(include_disabled=include_disabled)
    return success([agent.to_dict() for agent in agents])


@agents_api.route('/executions', methods=['GET'])
@permission_required('agents.view')
def list_executions():
    limit = max(1, min(request.args.get('limit', default=50, type=int), 500))
    executions = AgentExecutor.list_executions(post_id=request.args.get('post_id', type=int),
                                               agent_id=request.args.get('agent_id'),
                                               limit=limit)
    return success([execution.to_dict() for execution in executions])


@agents_api.route('/<string:agent_id>', methods=['GET'])
@permission_required('agents.view')
def get_agent(agent_id: str):
    return success(agent_registry.get(agent_id).to_dict())


@agents_api.route('/<string:agent_id>/run', methods=['POST'])
@permission_required('agents.run', 'posts.ai-review.save')
def run_agent(agent_id: str):
    """
    Run an agent against a post.

    Returns:
        200 OK: The execution; the post's ai-review layer holds the suggestions
        400 BAD REQUEST: Agent disabled or scope not supported
        404 NOT FOUND: Unknown agent or post
        502 BAD GATEWAY: Provider or endpoint failed
    """
    data = load_json(agent_run_schema)
    post = PostService.get_post(data['post_id'])
    execution = AgentExecutor.run(agent_id, post, g.user, scope=data['scope'],
                                  context=data.get('context'), field_key=data.get('field_key'))
    return success(execution.to_dict())
