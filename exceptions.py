"""
Error taxonomy for the vulnerability alerting service.

Every error carries the HTTP status it maps to, so the API layer can
translate it without knowing which component raised it.
"""
from typing import Any, Dict, Optional


class ChainGuardError(Exception):
    """Base exception for all service errors"""
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {"message": self.message}
        body.update(self.details)
        return body


class AuthError(ChainGuardError):
    """Missing or invalid identity"""
    status_code = 401


class ValidationError(ChainGuardError):
    """Malformed or missing required input"""
    status_code = 400


class ConflictError(ChainGuardError):
    """An active record with the same identity already exists"""
    status_code = 409


class NotFoundError(ChainGuardError):
    """Unknown resource, or a resource owned by someone else"""
    status_code = 404


class UpstreamError(ChainGuardError):
    """Feed provider answered with a non-success status.

    The upstream status code and raw body are forwarded verbatim.
    """

    def __init__(self, status_code: int, body: str = "",
                 hint: str = "Check NVD availability / parameters"):
        super().__init__("NVD upstream error", status_code=status_code)
        self.body = body
        self.hint = hint

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "status": self.status_code,
            "body": self.body,
            "hint": self.hint,
        }


class FeedParseError(ChainGuardError):
    """Upstream body could not be decoded into vulnerability records"""
    status_code = 502


class FeedTimeoutError(ChainGuardError):
    """Upstream did not answer within the configured timeout"""
    status_code = 504


class InternalError(ChainGuardError):
    """Unexpected failure (persistence, programming error)"""
    status_code = 500
