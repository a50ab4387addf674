"""
Code-first agent definitions.

Internal agents call an AI provider (OpenAI or Anthropic) directly; external
agents are HTTP endpoints that receive the post JSON and answer with a patch.
Agents declare the scopes in which they are offered or triggered.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

TYPE_INTERNAL = 'internal'
TYPE_EXTERNAL = 'external'

SCOPE_DROPDOWN = 'dropdown'
SCOPE_FIELD = 'field'
SCOPE_POST_PUBLISH = 'post.publish'
SCOPE_REVIEW_SAVE = 'post.review.save'
SCOPE_AI_REVIEW_SAVE = 'post.ai-review.save'

VALID_SCOPES = [SCOPE_DROPDOWN, SCOPE_FIELD, SCOPE_POST_PUBLISH, SCOPE_REVIEW_SAVE, SCOPE_AI_REVIEW_SAVE]
VALID_PROVIDERS = ['openai', 'anthropic']


@dataclass
class AgentDefinition:
    """Definition of an agent."""
    id: str
    name: str
    type: str = TYPE_INTERNAL
    description: str = ''
    scopes: List[str] = field(default_factory=lambda: [SCOPE_DROPDOWN])
    order: int = 100
    enabled: bool = True

    # Internal agents
    provider: Optional[str] = None
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)

    # External agents
    url: Optional[str] = None
    secret: Optional[str] = None
    timeout_ms: int = 30000

    def validate(self) -> None:
        """
        Raises:
            ValueError: For unknown types, scopes or providers and missing settings
        """
        if self.type not in (TYPE_INTERNAL, TYPE_EXTERNAL):
            raise ValueError(f"Agent '{self.id}' has invalid type '{self.type}'")
        unknown = [s for s in self.scopes if s not in VALID_SCOPES]
        if unknown:
            raise ValueError(f"Agent '{self.id}' has invalid scopes: {', '.join(unknown)}")
        if self.type == TYPE_INTERNAL:
            if self.provider not in VALID_PROVIDERS or not self.model:
                raise ValueError(f"Internal agent '{self.id}' needs a provider and a model")
        elif not self.url:
            raise ValueError(f"External agent '{self.id}' needs a url")

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'type': self.type,
            'scopes': list(self.scopes),
            'order': self.order,
            'enabled': self.enabled,
        }
        if self.type == TYPE_INTERNAL:
            data['provider'] = self.provider
            data['model'] = self.model
        return data


class AgentRegistry:
    """Registry of agent definitions."""

    def __init__(self) -> None:
        self._agents: Dict[str, AgentDefinition] = {}

    def register(self, agent: AgentDefinition) -> None:
        agent.validate()
        if agent.id in self._agents:
            raise ValueError(f"Agent '{agent.id}' is already registered")
        self._agents[agent.id] = agent
        logger.debug("Registered agent %s", agent.id)

    def get(self, agent_id: str) -> AgentDefinition:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise NotFoundError(f"Agent '{agent_id}' not found")
        return agent

    def has(self, agent_id: str) -> bool:
        return agent_id in self._agents

    def unregister(self, agent_id: str) -> None:
        self._agents.pop(agent_id, None)

    def list(self, include_disabled: bool = False) -> List[AgentDefinition]:
        agents = [a for a in self._agents.values() if include_disabled or a.enabled]
        return sorted(agents, key=lambda a: (a.order, a.name))

    def list_by_scope(self, scope: str) -> List[AgentDefinition]:
        return [a for a in self.list() if scope in a.scopes]


BUILTIN_AGENTS = [
    AgentDefinition(
        id='content-enhancer',
        name='Content Enhancer',
        description='Improves clarity and tone of the post title, excerpt and text modules',
        provider='openai',
        model='gpt-4o-mini',
        scopes=[SCOPE_DROPDOWN],
        order=10,
        system_prompt='You are an editor. Improve clarity, grammar and tone without changing the meaning.',
        options={'temperature': 0.4, 'max_tokens': 2000},
    ),
    AgentDefinition(
        id='translator',
        name='Translator',
        description='Translates the post fields and module text into the post locale',
        provider='anthropic',
        model='claude-3-5-haiku-latest',
        scopes=[SCOPE_DROPDOWN, SCOPE_FIELD],
        order=20,
        system_prompt='You are a professional translator. Translate every human readable string '
                      'into the locale of the post. Keep URLs, ids and markup unchanged.',
        options={'max_tokens': 4000},
    ),
    AgentDefinition(
        id='seo-optimizer',
        name='SEO Optimizer',
        description='Generates meta titles and descriptions',
        provider='openai',
        model='gpt-4o-mini',
        scopes=[SCOPE_DROPDOWN, SCOPE_POST_PUBLISH],
        order=30,
        enabled=False,
        system_prompt='You are an SEO expert. Keep meta titles under 60 characters and meta '
                      'descriptions under 155 characters.',
        options={'temperature': 0.7, 'max_tokens': 500},
    ),
]


def _build_default_registry() -> AgentRegistry:
    registry = AgentRegistry()
    for agent in BUILTIN_AGENTS:
        registry.register(agent)
    return registry


agent_registry = _build_default_registry()
