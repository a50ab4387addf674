"""
Command groups of the CMS CLI.
"""

from .cms import cms_cli

__all__ = ['cms_cli']
