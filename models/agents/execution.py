"""
Record of a single agent run against a post.
"""

from typing import Any, Dict

from extensions import db
from models.base import BaseModel


class AgentExecution(BaseModel):
    """Request, response and outcome of an agent run."""
    __tablename__ = 'agent_executions'

    STATUS_RUNNING = 'running'
    STATUS_SUCCESS = 'success'
    STATUS_FAILED = 'failed'

    id = db.Column(db.Integer, primary_key=True)
    agent_id = db.Column(db.String(100), nullable=False, index=True)
    post_id = db.Column(db.Integer, db.ForeignKey('posts.id', ondelete='SET NULL'), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    scope = db.Column(db.String(50), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_RUNNING)
    request = db.Column(db.JSON, nullable=True)
    response = db.Column(db.JSON, nullable=True)
    error = db.Column(db.Text, nullable=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'agent_id': self.agent_id,
            'post_id': self.post_id,
            'user_id': self.user_id,
            'scope': self.scope,
            'status': self.status,
            'request': self.request,
            'response': self.response,
            'error': self.error,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f'<AgentExecution {self.id} {self.agent_id} ({self.status})>'
