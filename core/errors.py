"""
core/errors.py -- Domain exception taxonomy.

Stores and services raise these; api/main.py maps each one to its HTTP status
with a single exception handler. Route handlers never build error responses
for these cases by hand.

Every exception carries a machine-readable code and a client-safe message.
The message is what the caller sees, so it must never contain internal
detail (SQL, stack traces, upstream response bodies).

Layer rule: core/ is the kernel. No imports from api/, auth/, franchise/,
or orders/.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for errors with a defined client-facing status."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Malformed input caught before any store or authorization work."""

    status_code = 400
    code = "validation_error"


class AuthenticationError(ServiceError):
    """Missing, malformed, forged, or revoked credential.

    The message is always "unauthorized" so callers cannot tell which check
    failed.
    """

    status_code = 401
    code = "unauthorized"

    def __init__(self, message: str = "unauthorized") -> None:
        super().__init__(message)


class AuthorizationError(ServiceError):
    """Authenticated, but the role or scope does not permit the action."""

    status_code = 403
    code = "forbidden"


class NotFoundError(ServiceError):
    status_code = 404
    code = "not_found"


class ConflictError(ServiceError):
    status_code = 409
    code = "conflict"


class UpstreamError(ServiceError):
    """The order factory rejected or failed to answer a submission."""

    status_code = 500
    code = "upstream_error"

    def __init__(self, message: str, report_url: str | None = None) -> None:
        super().__init__(message)
        self.report_url = report_url
