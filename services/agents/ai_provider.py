"""
Chat completion clients for the AI providers used by internal agents.

OpenAI is called through ``chat.completions.create`` of the ``openai`` SDK,
Anthropic through ``messages.create`` of the ``anthropic`` SDK. API keys,
base URLs, timeout and retry count come from the application config. Both
providers return a normalized dictionary with ``content``, ``model`` and
``usage``.
"""

import logging
from typing import Any, Dict, List, Optional

import anthropic
import openai
from flask import current_app

from core.exceptions import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 1024


def _client_options(prefix: str) -> Dict[str, Any]:
    config = current_app.config
    api_key = config.get(f'{prefix}_API_KEY')
    if not api_key:
        raise UpstreamError(f"{prefix}_API_KEY is not configured")
    options: Dict[str, Any] = {
        'api_key': api_key,
        'timeout': float(config.get('AI_REQUEST_TIMEOUT', 60)),
        'max_retries': int(config.get('AI_MAX_RETRIES', 2)),
    }
    if config.get(f'{prefix}_BASE_URL'):
        options['base_url'] = config[f'{prefix}_BASE_URL']
    return options


def _upstream_error(provider: str, error: Exception) -> UpstreamError:
    status = getattr(error, 'status_code', None)
    meta: Dict[str, Any] = {'provider': provider}
    if status is not None:
        meta['status'] = status
        logger.error("%s returned HTTP %s: %s", provider, status, error)
        return UpstreamError(f"{provider} returned HTTP {status}", meta=meta)
    logger.error("%s request failed: %s", provider, error)
    return UpstreamError(f"{provider} request failed: {error}", meta=meta)


def _usage(usage: Any, prompt_attr: str, completion_attr: str) -> Dict[str, int]:
    return {
        'prompt_tokens': getattr(usage, prompt_attr, 0) or 0,
        'completion_tokens': getattr(usage, completion_attr, 0) or 0,
    }


class AIProviderService:
    """Provider-neutral chat completion."""

    @staticmethod
    def complete(provider: str, model: str, messages: List[Dict[str, str]],
                 options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run a chat completion.

        Args:
            provider: ``openai`` or ``anthropic``
            model: Provider model name
            messages: ``{"role", "content"}`` messages; ``system`` messages are allowed
            options: ``temperature`` and ``max_tokens``

        Returns:
            Dict[str, Any]: ``content``, ``model`` and ``usage`` (prompt/completion tokens)

        Raises:
            UpstreamError: Missing API key, SDK errors or empty answers
        """
        options = options or {}
        if provider == 'openai':
            return AIProviderService._openai(model, messages, options)
        if provider == 'anthropic':
            return AIProviderService._anthropic(model, messages, options)
        raise UpstreamError(f"Unsupported AI provider '{provider}'")

    @staticmethod
    def _openai(model: str, messages: List[Dict[str, str]], options: Dict[str, Any]) -> Dict[str, Any]:
        client = openai.OpenAI(**_client_options('OPENAI'))

        params: Dict[str, Any] = {'model': model, 'messages': messages}
        if 'temperature' in options:
            params['temperature'] = options['temperature']
        if 'max_tokens' in options:
            params['max_tokens'] = options['max_tokens']

        try:
            response = client.chat.completions.create(**params)
        except openai.APIError as e:
            raise _upstream_error('openai', e)

        if not response.choices:
            raise UpstreamError("openai response has no completion", meta={'provider': 'openai'})
        return {
            'content': response.choices[0].message.content or '',
            'model': response.model or model,
            'usage': _usage(response.usage, 'prompt_tokens', 'completion_tokens'),
        }

    @staticmethod
    def _anthropic(model: str, messages: List[Dict[str, str]], options: Dict[str, Any]) -> Dict[str, Any]:
        client = anthropic.Anthropic(**_client_options('ANTHROPIC'))

        params: Dict[str, Any] = {
            'model': model,
            'max_tokens': options.get('max_tokens', DEFAULT_MAX_TOKENS),
            'messages': [m for m in messages if m['role'] != 'system'],
        }
        system = '\n\n'.join(m['content'] for m in messages if m['role'] == 'system')
        if system:
            params['system'] = system
        if 'temperature' in options:
            params['temperature'] = options['temperature']

        try:
            message = client.messages.create(**params)
        except anthropic.APIError as e:
            raise _upstream_error('anthropic', e)

        content = ''.join(block.text for block in message.content or [] if block.type == 'text')
        if not content:
            raise UpstreamError("anthropic response has no text content", meta={'provider': 'anthropic'})
        return {
            'content': content,
            'model': message.model or model,
            'usage': _usage(message.usage, 'input_tokens', 'output_tokens'),
        }
