"""
Workflow API module for the CMS.

Workflows are defined in code and delivered like webhooks; the API exposes
them read-only.

Key endpoints:
- /api/workflows: Registered workflows
- /api/workflows/<id>: One workflow
- /api/workflows/<id>/deliveries: Delivery history
"""

from .routes import workflows_api

__all__ = ['workflows_api']
