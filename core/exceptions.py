"""
Application exception types.

Service functions raise these exceptions; the error handlers registered by the
application factory translate them into JSON error responses carrying the
status code, message and optional metadata.
"""

from typing import Any, Dict, Optional


class CmsError(Exception):
    """
    Base exception for expected, user-facing failures.

    Attributes:
        message: Human readable description
        status_code: HTTP status code to respond with
        code: Short machine readable error code
        meta: Optional extra data included in the response body
    """

    status_code = 400
    code = 'bad_request'

    def __init__(self, message: str, status_code: Optional[int] = None,
                 meta: Optional[Dict[str, Any]] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.meta = meta

    def to_dict(self) -> Dict[str, Any]:
        """Build the JSON body used for API error responses."""
        body: Dict[str, Any] = {
            'status': 'error',
            'message': self.message,
            'code': self.code,
        }
        if self.meta:
            body['meta'] = self.meta
        return body


class ValidationError(CmsError):
    """Invalid input (400)."""
    status_code = 400
    code = 'validation_error'


class ForbiddenError(CmsError):
    """The current user lacks the required permission (403)."""
    status_code = 403
    code = 'forbidden'


class NotFoundError(CmsError):
    """The requested resource does not exist (404)."""
    status_code = 404
    code = 'not_found'


class ConflictError(CmsError):
    """The operation conflicts with existing data (409)."""
    status_code = 409
    code = 'conflict'


class UpstreamError(CmsError):
    """An external provider failed (502)."""
    status_code = 502
    code = 'upstream_error'
