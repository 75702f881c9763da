"""
Error taxonomy for the file sharing engine.

Every rejected operation surfaces as one of these exceptions. Each carries a
stable ``kind`` string, the HTTP status it maps to and a human readable
message. Optional ``extra`` fields are merged into the JSON body.
"""

from typing import Any, Dict, Optional


class FileShareError(Exception):
    """Base exception for all engine errors."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.kind, "message": self.message}
        body.update(self.extra)
        return body


class ValidationError(FileShareError):
    """Malformed or policy-violating input (size, dates, password length)."""

    kind = "validation_error"
    status_code = 400


class Unauthorized(FileShareError):
    """Credentials are missing or invalid where they are required."""

    kind = "unauthorized"
    status_code = 401


class Forbidden(FileShareError):
    """Authenticated but not entitled."""

    kind = "forbidden"
    status_code = 403


class NotFound(FileShareError):
    kind = "not_found"
    status_code = 404


class Conflict(FileShareError):
    kind = "conflict"
    status_code = 409


class Gone(FileShareError):
    """The file's availability window has ended."""

    kind = "gone"
    status_code = 410


class PayloadTooLarge(FileShareError):
    kind = "payload_too_large"
    status_code = 413


class Locked(FileShareError):
    """The file's availability window has not started yet."""

    kind = "locked"
    status_code = 423


class RateLimited(FileShareError):
    kind = "rate_limited"
    status_code = 429


class InternalError(FileShareError):
    """
    Storage or database failure.

    The message given here is logged but never rendered to clients; they get
    ``PUBLIC_MESSAGE`` instead.
    """

    kind = "internal_error"
    status_code = 500
    PUBLIC_MESSAGE = "Internal server error"

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.PUBLIC_MESSAGE}
