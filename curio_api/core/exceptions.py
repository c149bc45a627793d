"""
Domain error taxonomy.

Services raise these; the handler registered in ``main.py`` turns them into
JSON responses of the form ``{"success": false, "code": ..., "message": ...}``.
"""

from typing import Optional


class CurioError(Exception):
    """Base class for errors surfaced to API callers."""

    code = "ERROR"
    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class NotFoundError(CurioError):
    code = "NOT_FOUND"
    status_code = 404


class ForbiddenError(CurioError):
    code = "FORBIDDEN"
    status_code = 403


class InvalidError(CurioError):
    """Malformed input: empty reason, unknown role, bad status."""
    code = "VALIDATION_ERROR"
    status_code = 400


class ConflictError(CurioError):
    """Already done, or targets something the caller may not target (self)."""
    code = "CONFLICT"
    status_code = 409


class AuthenticationError(CurioError):
    code = "UNAUTHORIZED"
    status_code = 401
