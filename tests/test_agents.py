"""
Tests for agents: patch parsing, provider calls and execution records.
"""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import anthropic
import httpx
import openai
import pytest

from core.exceptions import CmsError, UpstreamError
from models.agents.execution import AgentExecution
from services.agents import AgentExecutor, agent_registry
from services.agents.ai_provider import AIProviderService
from services.agents.executor import parse_patch
from services.agents.registry import SCOPE_POST_PUBLISH, TYPE_EXTERNAL, AgentDefinition
from services.serializer_service import SerializerService
from services.webhook_service import verify_webhook_signature

OPENAI_CLIENT = 'services.agents.ai_provider.openai.OpenAI'
ANTHROPIC_CLIENT = 'services.agents.ai_provider.anthropic.Anthropic'


def _openai_completion(content):
    return SimpleNamespace(
        model='gpt-test',
        choices=[SimpleNamespace(message=SimpleNamespace(role='assistant', content=content))],
        usage=SimpleNamespace(prompt_tokens=120, completion_tokens=30),
    )


def _openai_client(content=None, error=None):
    client = MagicMock()
    if error is not None:
        client.chat.completions.create.side_effect = error
    else:
        client.chat.completions.create.return_value = _openai_completion(content)
    return client


def _status_error(error_cls, status_code, url):
    request = httpx.Request('POST', url)
    return error_cls('upstream failure', response=httpx.Response(status_code, request=request), body=None)


def _prose(post):
    return [pm for pm in post.post_modules if pm.module_instance.type == 'prose'][0]


@pytest.fixture
def external_agent(app):
    agent = AgentDefinition(id='external-test', name='External test', type=TYPE_EXTERNAL,
                            url='https://agents.example.com/run', secret='shh')
    agent_registry.register(agent)
    yield agent
    agent_registry.unregister(agent.id)


class TestParsePatch:
    """Test suite for agent answer parsing."""

    def test_dict_answer(self) -> None:
        assert parse_patch({'post': {'title': 'x'}}) == {'post': {'title': 'x'}, 'modules': []}

    def test_fenced_answer(self) -> None:
        text = 'Here you go:\n```json\n{"post": {"excerpt": "Short"}, "modules": [{"id": 3}]}\n```\nDone.'
        assert parse_patch(text) == {'post': {'excerpt': 'Short'}, 'modules': [{'id': 3}]}

    def test_bare_object_with_prose(self) -> None:
        assert parse_patch('Sure! {"post": {"title": "T"}} Hope it helps')['post'] == {'title': 'T'}

    def test_malformed_shapes_are_ignored(self) -> None:
        assert parse_patch('{"post": "nope", "modules": {}}') == {'post': {}, 'modules': []}

    @pytest.mark.parametrize('answer', ['no json here', '[1, 2]', '{"post": }'])
    def test_unreadable_answer(self, answer) -> None:
        with pytest.raises(UpstreamError) as exc_info:
            parse_patch(answer)
        assert exc_info.value.status_code == 502


class TestAIProviderService:
    """Test suite for the SDK-backed provider clients."""

    def test_openai_client_uses_config(self, app) -> None:
        app.config['OPENAI_BASE_URL'] = 'https://llm.internal.example/v1'
        messages = [{'role': 'system', 'content': 'Be brief'}, {'role': 'user', 'content': 'Hi'}]

        with patch(OPENAI_CLIENT, return_value=_openai_client('Hello')) as client_cls:
            result = AIProviderService.complete('openai', 'gpt-4o', messages, {'temperature': 0.2})

        client_cls.assert_called_once_with(api_key='test-openai-key', timeout=60.0, max_retries=0,
                                           base_url='https://llm.internal.example/v1')
        kwargs = client_cls.return_value.chat.completions.create.call_args[1]
        assert kwargs == {'model': 'gpt-4o', 'messages': messages, 'temperature': 0.2}
        assert result == {'content': 'Hello', 'model': 'gpt-test',
                          'usage': {'prompt_tokens': 120, 'completion_tokens': 30}}

    def test_anthropic_connection_error(self, app) -> None:
        error = anthropic.APIConnectionError(request=httpx.Request('POST', 'https://api.anthropic.com/v1/messages'))
        with patch(ANTHROPIC_CLIENT) as client_cls:
            client_cls.return_value.messages.create.side_effect = error
            with pytest.raises(UpstreamError) as exc_info:
                AIProviderService.complete('anthropic', 'claude-test', [{'role': 'user', 'content': 'Hi'}])

        assert exc_info.value.status_code == 502
        assert exc_info.value.meta == {'provider': 'anthropic'}
        assert 'request failed' in exc_info.value.message

    def test_anthropic_empty_answer(self, app) -> None:
        with patch(ANTHROPIC_CLIENT) as client_cls:
            client_cls.return_value.messages.create.return_value = SimpleNamespace(
                model='claude-test', content=[], usage=None)
            with pytest.raises(UpstreamError):
                AIProviderService.complete('anthropic', 'claude-test', [{'role': 'user', 'content': 'Hi'}])

    def test_unknown_provider(self, app) -> None:
        with pytest.raises(UpstreamError):
            AIProviderService.complete('mistral', 'x', [])


class TestAgentExecutor:
    """Test suite for AgentExecutor.run."""

    def test_internal_agent_writes_ai_review_layer(self, make_post, admin_user) -> None:
        post = make_post(title='Plain title')
        prose = _prose(post)
        answer = json.dumps({
            'post': {'title': 'Better title', 'status': 'published'},
            'modules': [{'id': prose.id, 'props': {'content': '<p>Sharper copy</p>'}},
                        {'id': 99999, 'props': {'content': 'ignored'}}],
        })

        with patch(OPENAI_CLIENT, return_value=_openai_client(answer)) as client_cls:
            execution = AgentExecutor.run('content-enhancer', post, admin_user, context='Make it punchy')

        assert client_cls.call_args[1]['api_key'] == 'test-openai-key'
        assert client_cls.call_args[1]['base_url'] == 'https://api.openai.com/v1'
        messages = client_cls.return_value.chat.completions.create.call_args[1]['messages']
        assert messages[0]['role'] == 'system'
        assert 'Make it punchy' in messages[1]['content']

        assert execution.status == AgentExecution.STATUS_SUCCESS
        assert execution.response['applied'] == {'fields': ['title'], 'modules': 1}
        assert execution.response['usage'] == {'prompt_tokens': 120, 'completion_tokens': 30}

        assert post.title == 'Plain title'
        assert post.status == 'draft'
        assert post.ai_review_draft['title'] == 'Better title'
        ai_view = SerializerService.serialize(post, 'ai-review')
        prose_view = [m for m in ai_view['modules'] if m['type'] == 'prose'][0]
        assert prose_view['props']['content'] == '<p>Sharper copy</p>'
        live_view = SerializerService.serialize(post, 'publish')
        assert [m for m in live_view['modules'] if m['type'] == 'prose'][0]['props'] != prose_view['props']

    def test_anthropic_agent_field_scope(self, make_post, admin_user) -> None:
        post = make_post(title='About us')
        message = SimpleNamespace(
            model='claude-test',
            content=[SimpleNamespace(type='text', text='```json\n{"post": {"title": "Sobre nosotros"}}\n```')],
            usage=SimpleNamespace(input_tokens=10, output_tokens=5),
        )

        with patch(ANTHROPIC_CLIENT) as client_cls:
            client_cls.return_value.messages.create.return_value = message
            execution = AgentExecutor.run('translator', post, admin_user, scope='field', field_key='title')

        assert client_cls.call_args[1]['api_key'] == 'test-anthropic-key'
        assert client_cls.call_args[1]['base_url'] == 'https://api.anthropic.com'
        kwargs = client_cls.return_value.messages.create.call_args[1]
        assert kwargs['system']
        assert all(m['role'] != 'system' for m in kwargs['messages'])
        assert "Only change the field 'title'" in kwargs['messages'][0]['content']
        assert execution.response['usage'] == {'prompt_tokens': 10, 'completion_tokens': 5}
        assert post.ai_review_draft['title'] == 'Sobre nosotros'

    def test_provider_failure_is_recorded(self, make_post, admin_user) -> None:
        post = make_post()
        error = _status_error(openai.APIStatusError, 500, 'https://api.openai.com/v1/chat/completions')
        with patch(OPENAI_CLIENT, return_value=_openai_client(error=error)):
            with pytest.raises(CmsError) as exc_info:
                AgentExecutor.run('content-enhancer', post, admin_user)

        assert exc_info.value.status_code == 502
        execution = AgentExecution.query.one()
        assert execution.status == AgentExecution.STATUS_FAILED
        assert 'HTTP 500' in execution.error
        assert post.ai_review_draft is None

    def test_missing_api_key(self, app, make_post, admin_user) -> None:
        app.config['OPENAI_API_KEY'] = None
        with patch(OPENAI_CLIENT) as client_cls:
            with pytest.raises(CmsError) as exc_info:
                AgentExecutor.run('content-enhancer', make_post(), admin_user)
        assert exc_info.value.status_code == 502
        client_cls.assert_not_called()

    @pytest.mark.parametrize('agent_id,scope,status', [
        ('seo-optimizer', 'dropdown', 400),
        ('content-enhancer', 'field', 400),
        ('does-not-exist', 'dropdown', 404),
    ])
    def test_rejected_runs(self, make_post, admin_user, agent_id, scope, status) -> None:
        with pytest.raises(CmsError) as exc_info:
            AgentExecutor.run(agent_id, make_post(), admin_user, scope=scope)
        assert exc_info.value.status_code == status
        assert AgentExecution.query.count() == 0

    def test_external_agent_is_signed(self, make_post, admin_user, external_agent) -> None:
        post = make_post()
        response = MagicMock()
        response.status_code = 200
        response.json.return_value = {'post': {'excerpt': 'From outside'}}

        with patch('services.agents.executor.requests.post', return_value=response) as mock_post:
            execution = AgentExecutor.run('external-test', post, admin_user)

        kwargs = mock_post.call_args[1]
        assert verify_webhook_signature(kwargs['data'], kwargs['headers']['X-Agent-Signature'], 'shh')
        assert json.loads(kwargs['data'])['post']['post']['title'] == post.title
        assert execution.response['model'] is None
        assert post.ai_review_draft['excerpt'] == 'From outside'

    def test_trigger_skips_disabled_agents(self, make_post, admin_user) -> None:
        with patch(OPENAI_CLIENT) as client_cls:
            assert AgentExecutor.trigger(SCOPE_POST_PUBLISH, make_post(), admin_user) == []
        client_cls.assert_not_called()


class TestAgentsApi:
    """Test suite for the agent endpoints."""

    def test_list_agents(self, client, editor_headers) -> None:
        response = client.get('/api/agents', headers=editor_headers)
        ids = [a['id'] for a in response.get_json()['data']]
        assert 'content-enhancer' in ids
        assert 'seo-optimizer' not in ids

        response = client.get('/api/agents?include_disabled=1', headers=editor_headers)
        assert 'seo-optimizer' in [a['id'] for a in response.get_json()['data']]

        assert client.get('/api/agents/nope', headers=editor_headers).status_code == 404

    def test_run_agent(self, client, editor_headers, make_post) -> None:
        post = make_post()
        answer = json.dumps({'post': {'meta_title': 'SEO title'}})

        with patch(OPENAI_CLIENT, return_value=_openai_client(answer)):
            response = client.post('/api/agents/content-enhancer/run', headers=editor_headers,
                                   json={'post_id': post.id})

        assert response.status_code == 200
        assert response.get_json()['data']['status'] == 'success'

        response = client.get(f'/api/agents/executions?post_id={post.id}', headers=editor_headers)
        assert len(response.get_json()['data']) == 1

    def test_run_agent_errors(self, client, editor_headers, translator_headers, make_post) -> None:
        post = make_post()
        response = client.post('/api/agents/content-enhancer/run', headers=translator_headers,
                               json={'post_id': post.id})
        assert response.status_code == 403

        response = client.post('/api/agents/content-enhancer/run', headers=editor_headers,
                               json={'post_id': 99999})
        assert response.status_code == 404

        response = client.post('/api/agents/content-enhancer/run', headers=editor_headers,
                               json={'post_id': post.id, 'scope': 'everywhere'})
        assert response.status_code == 400

        with patch(OPENAI_CLIENT, return_value=_openai_client('not json at all')):
            response = client.post('/api/agents/content-enhancer/run', headers=editor_headers,
                                   json={'post_id': post.id})
        assert response.status_code == 502
