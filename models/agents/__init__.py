"""
Agent execution log.
"""

from .execution import AgentExecution

__all__ = ['AgentExecution']
