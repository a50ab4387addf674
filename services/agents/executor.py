"""
Agent execution.

An agent receives the canonical JSON of a post (as seen from the ai-review
layer) and answers with a JSON patch of the form::

    {"post": {"title": "...", "excerpt": "..."},
     "modules": [{"id": 12, "props": {"content": "..."}}]}

The patch is saved into the post's ai-review layer, where an editor can
approve or reject it. Every run is recorded as an AgentExecution.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

import requests
from requests.exceptions import RequestException
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models.agents.execution import AgentExecution
from models.content.module import PostModule
from models.content.post import Post
from core.exceptions import CmsError, UpstreamError
from services import content_versioning as cv
from services.agents.ai_provider import AIProviderService
from services.agents.registry import TYPE_INTERNAL, AgentDefinition, agent_registry
from services.webhook_service import generate_webhook_signature

logger = logging.getLogger(__name__)

RESPONSE_INSTRUCTIONS = (
    "Respond with a single JSON object and nothing else. Use the shape "
    '{"post": {<changed post fields>}, "modules": [{"id": <post_module_id>, "props": {<changed props>}}]}. '
    "Only include fields you change. Allowed post fields: slug, title, excerpt, meta_title, "
    "meta_description, canonical_url, robots_json, jsonld_overrides, custom_fields."
)

_FENCE_RE = re.compile(r'```(?:json)?\s*(.*?)```', re.DOTALL)


def parse_patch(content: Any) -> Dict[str, Any]:
    """
    Extract the ``{post, modules}`` patch from an agent answer.

    Accepts a dictionary or text that contains a JSON object, optionally
    wrapped in a Markdown code fence.

    Raises:
        UpstreamError: If no JSON object can be read
    """
    if isinstance(content, dict):
        data = content
    else:
        text = str(content or '').strip()
        fenced = _FENCE_RE.search(text)
        if fenced:
            text = fenced.group(1).strip()
        start, end = text.find('{'), text.rfind('}')
        if start == -1 or end <= start:
            raise UpstreamError("Agent response does not contain a JSON object")
        try:
            data = json.loads(text[start:end + 1])
        except ValueError:
            raise UpstreamError("Agent response is not valid JSON")
        if not isinstance(data, dict):
            raise UpstreamError("Agent response must be a JSON object")

    post_patch = data.get('post') if isinstance(data.get('post'), dict) else {}
    modules = data.get('modules') if isinstance(data.get('modules'), list) else []
    return {'post': post_patch, 'modules': modules}


class AgentExecutor:
    """Runs agents against posts."""

    @staticmethod
    def build_messages(agent: AgentDefinition, document: Dict[str, Any], context: Optional[str] = None,
                       field_key: Optional[str] = None) -> List[Dict[str, str]]:
        system = '\n\n'.join(p for p in [agent.system_prompt, RESPONSE_INSTRUCTIONS] if p)
        user_parts = [f"Post JSON:\n{json.dumps(document, ensure_ascii=False, default=str)}"]
        if field_key:
            user_parts.append(f"Only change the field '{field_key}'.")
        if context:
            user_parts.append(f"Instructions from the editor:\n{context}")
        return [{'role': 'system', 'content': system}, {'role': 'user', 'content': '\n\n'.join(user_parts)}]

    @staticmethod
    def _call_internal(agent: AgentDefinition, document: Dict[str, Any], context: Optional[str],
                       field_key: Optional[str]) -> Dict[str, Any]:
        messages = AgentExecutor.build_messages(agent, document, context, field_key)
        result = AIProviderService.complete(agent.provider, agent.model, messages, agent.options)
        return {'patch': parse_patch(result['content']), 'model': result['model'], 'usage': result['usage']}

    @staticmethod
    def _call_external(agent: AgentDefinition, document: Dict[str, Any], context: Optional[str],
                       field_key: Optional[str], scope: str) -> Dict[str, Any]:
        body = json.dumps({'agent': agent.id, 'scope': scope, 'context': context,
                           'field_key': field_key, 'post': document}, default=str)
        headers = {'Content-Type': 'application/json', 'User-Agent': 'CMS-Agent/1.0'}
        if agent.secret:
            headers['X-Agent-Signature'] = generate_webhook_signature(body, agent.secret)
        try:
            response = requests.post(agent.url, data=body, headers=headers, timeout=agent.timeout_ms / 1000.0)
        except RequestException as e:
            raise UpstreamError(f"Agent '{agent.id}' request failed: {e}")
        if response.status_code >= 400:
            raise UpstreamError(f"Agent '{agent.id}' returned HTTP {response.status_code}",
                                meta={'status': response.status_code})
        try:
            data = response.json()
        except ValueError:
            data = response.text
        return {'patch': parse_patch(data), 'model': None, 'usage': None}

    @staticmethod
    def apply_patch(post: Post, patch: Dict[str, Any], user: Any = None) -> Dict[str, Any]:
        """
        Save an agent patch into the post's ai-review layer.

        Unknown post fields and modules that do not belong to the post are
        ignored.

        Returns:
            Dict[str, Any]: Names of the applied fields and the number of modules
        """
        from services.post_service import PostService, STAGED_FIELDS

        data: Dict[str, Any] = {k: v for k, v in (patch.get('post') or {}).items() if k in STAGED_FIELDS}
        fields = sorted(data)
        custom_fields = (patch.get('post') or {}).get('custom_fields')
        if isinstance(custom_fields, list):
            data['custom_fields'] = custom_fields

        module_patches = []
        for entry in patch.get('modules') or []:
            if not isinstance(entry, dict):
                continue
            post_module_id = entry.get('id') or entry.get('post_module_id')
            post_module = db.session.get(PostModule, post_module_id) if post_module_id else None
            if post_module is None or post_module.post_id != post.id:
                logger.warning("Agent patch references unknown module %s of post %s", post_module_id, post.id)
                continue
            module_patch: Dict[str, Any] = {'id': post_module.id}
            if isinstance(entry.get('props'), dict):
                module_patch['props'] = entry['props']
            if isinstance(entry.get('overrides'), dict):
                module_patch['overrides'] = entry['overrides']
            if len(module_patch) > 1:
                module_patches.append(module_patch)
        if module_patches:
            data['modules'] = module_patches

        if data:
            PostService.save_post(post, user, mode=cv.MODE_AI_REVIEW, data=data)
        return {'fields': fields, 'modules': len(module_patches)}

    @staticmethod
    def run(agent_id: str, post: Post, user: Any = None, scope: str = 'dropdown',
            context: Optional[str] = None, field_key: Optional[str] = None) -> AgentExecution:
        """
        Run an agent against a post.

        Args:
            agent_id: Registered agent id
            post: Target post
            user: Acting user
            scope: Scope the agent is run from
            context: Free-form instructions from the editor
            field_key: Field to restrict the change to (``field`` scope)

        Returns:
            AgentExecution: The successful execution

        Raises:
            NotFoundError: Unknown agent
            CmsError: 400 for disabled agents or scopes the agent does not support
            UpstreamError: 502 when the provider or endpoint fails
        """
        agent = agent_registry.get(agent_id)
        if not agent.enabled:
            raise CmsError(f"Agent '{agent_id}' is disabled", status_code=400)
        if scope not in agent.scopes:
            raise CmsError(f"Agent '{agent_id}' does not support scope '{scope}'", status_code=400)

        from services.serializer_service import SerializerService
        document = SerializerService.serialize(post, cv.MODE_AI_REVIEW)

        execution = AgentExecution(
            agent_id=agent.id,
            post_id=post.id,
            user_id=getattr(user, 'id', None),
            scope=scope,
            status=AgentExecution.STATUS_RUNNING,
            request={'context': context, 'field_key': field_key, 'mode': cv.MODE_AI_REVIEW},
        )
        try:
            db.session.add(execution)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to record execution of agent %s: %s", agent.id, e)
            raise

        try:
            if agent.type == TYPE_INTERNAL:
                result = AgentExecutor._call_internal(agent, document, context, field_key)
            else:
                result = AgentExecutor._call_external(agent, document, context, field_key, scope)
            applied = AgentExecutor.apply_patch(post, result['patch'], user)
        except CmsError as e:
            db.session.rollback()
            logger.error("Agent %s failed on post %s: %s", agent.id, post.id, e.message)
            execution.status = AgentExecution.STATUS_FAILED
            execution.error = e.message
            db.session.commit()
            if isinstance(e, UpstreamError):
                raise
            raise UpstreamError(f"Agent '{agent.id}' failed: {e.message}", meta={'execution_id': execution.id})

        execution.status = AgentExecution.STATUS_SUCCESS
        execution.response = {'patch': result['patch'], 'applied': applied,
                              'model': result['model'], 'usage': result['usage']}
        db.session.commit()
        logger.info("Agent %s applied %s to post %s", agent.id, applied, post.id)
        return execution

    @staticmethod
    def trigger(scope: str, post: Post, user: Any = None) -> List[AgentExecution]:
        """
        Run every enabled agent registered for an automatic scope.

        Failures are logged and do not propagate.
        """
        executions = []
        for agent in agent_registry.list_by_scope(scope):
            try:
                executions.append(AgentExecutor.run(agent.id, post, user, scope=scope))
            except CmsError as e:
                logger.warning("Agent %s failed for %s on post %s: %s", agent.id, scope, post.id, e.message)
        return executions

    @staticmethod
    def list_executions(post_id: Optional[int] = None, agent_id: Optional[str] = None,
                        limit: int = 50) -> List[AgentExecution]:
        query = AgentExecution.query
        if post_id is not None:
            query = query.filter_by(post_id=post_id)
        if agent_id:
            query = query.filter_by(agent_id=agent_id)
        return query.order_by(AgentExecution.id.desc()).limit(limit).all()
