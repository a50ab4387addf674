"""
AI agents for the CMS.

Agents are defined in code (``registry``), call an AI provider or an external
endpoint (``ai_provider``) and write their suggestions into the ai-review
layer of a post (``executor``).
"""

from .executor import AgentExecutor, parse_patch
from .registry import AgentDefinition, AgentRegistry, agent_registry

__all__ = ['AgentDefinition', 'AgentRegistry', 'AgentExecutor', 'agent_registry', 'parse_patch']
