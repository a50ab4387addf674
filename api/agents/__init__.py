"""
Agent API module for the CMS.

Agents propose content changes that are saved into a post's ai-review
layer.

Key endpoints:
- /api/agents: Registered agents, optionally for one ``?scope=``
- /api/agents/<id>/run: Run an agent against a post
- /api/agents/executions: Execution history
"""

from .routes import agents_api

__all__ = ['agents_api']
