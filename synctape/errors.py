"""Error taxonomy shared by the sync core, provider adapters and the CLI.

Every error carries an ``http_status`` so interactive callers can map a
failure to a response code without inspecting messages, and a short
``kind`` string used in structured sync outcomes.

Provider errors (raised at the streaming-service boundary) derive from
:class:`ProviderError`; errors about local state or the caller derive
directly from :class:`SyncTapeError`.
"""
from __future__ import annotations


class SyncTapeError(Exception):
    """Base class for all expected synctape failures."""

    http_status = 500
    kind = "error"


class InvalidRequestError(SyncTapeError):
    """Caller supplied an unusable request (unknown service, no links...)."""

    http_status = 400
    kind = "invalid_request"


class AuthMissingError(SyncTapeError):
    """No stored credential / connected account for a (user, service)."""

    http_status = 403
    kind = "auth_missing"

    def __init__(self, user_id: int, service: str):
        super().__init__(f"No {service} account connected for user {user_id}")
        self.user_id = user_id
        self.service = service


class ForbiddenError(SyncTapeError):
    """Caller lacks rights to the canonical playlist."""

    http_status = 403
    kind = "forbidden"


class NotFoundError(SyncTapeError):
    """Playlist or resource missing, locally or upstream."""

    http_status = 404
    kind = "not_found"


class ConflictError(SyncTapeError):
    """A link for that (playlist, service, user) already exists."""

    http_status = 409
    kind = "conflict"


class ProviderError(SyncTapeError):
    """Streaming service returned an error we do not classify further."""

    http_status = 502
    kind = "provider_error"

    def __init__(self, message: str, service: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class AuthExpiredError(ProviderError):
    """Provider rejected the access token (HTTP 401)."""

    http_status = 401
    kind = "auth_expired"


class RateLimitedError(ProviderError):
    """Provider kept answering 429 after the retry budget was spent."""

    http_status = 429
    kind = "rate_limited"

    def __init__(self, message: str, service: str | None = None, retry_after: float | None = None):
        super().__init__(message, service=service, status_code=429)
        self.retry_after = retry_after


class UpstreamUnavailableError(ProviderError):
    """Network failure, timeout or 5xx from the provider."""

    http_status = 503
    kind = "upstream_unavailable"


class UnimplementedError(ProviderError):
    """Service adapter (or one of its operations) is not built yet."""

    http_status = 501
    kind = "unimplemented"


def http_status_for(exc: BaseException) -> int:
    """Map any exception to the HTTP status an API layer should answer with."""
    return getattr(exc, "http_status", 500)


def error_kind(exc: BaseException) -> str:
    if isinstance(exc, SyncTapeError):
        return exc.kind
    if isinstance(exc, TimeoutError):
        return "timeout"
    return "error"


__all__ = [
    "SyncTapeError",
    "InvalidRequestError",
    "AuthMissingError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "ProviderError",
    "AuthExpiredError",
    "RateLimitedError",
    "UpstreamUnavailableError",
    "UnimplementedError",
    "http_status_for",
    "error_kind",
]
