import pytest

from synctape.errors import (
    AuthExpiredError,
    AuthMissingError,
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    ProviderError,
    RateLimitedError,
    UnimplementedError,
    UpstreamUnavailableError,
    error_kind,
    http_status_for,
)


@pytest.mark.parametrize(
    "exc,status,kind",
    [
        (InvalidRequestError("x"), 400, "invalid_request"),
        (AuthMissingError(1, "spotify"), 403, "auth_missing"),
        (ForbiddenError("x"), 403, "forbidden"),
        (NotFoundError("x"), 404, "not_found"),
        (ConflictError("x"), 409, "conflict"),
        (ProviderError("x"), 502, "provider_error"),
        (AuthExpiredError("x"), 401, "auth_expired"),
        (RateLimitedError("x", retry_after=3), 429, "rate_limited"),
        (UpstreamUnavailableError("x"), 503, "upstream_unavailable"),
        (UnimplementedError("x"), 501, "unimplemented"),
    ],
)
def test_status_and_kind(exc, status, kind):
    assert http_status_for(exc) == status
    assert error_kind(exc) == kind


def test_foreign_exceptions():
    assert http_status_for(ValueError("x")) == 500
    assert error_kind(ValueError("x")) == "error"
    assert error_kind(TimeoutError()) == "timeout"


def test_provider_errors_carry_context():
    err = RateLimitedError("slow down", service="spotify", retry_after=2.0)
    assert isinstance(err, ProviderError)
    assert (err.service, err.status_code, err.retry_after) == ("spotify", 429, 2.0)
    missing = AuthMissingError(7, "apple_music")
    assert (missing.user_id, missing.service) == (7, "apple_music")
    assert "apple_music" in str(missing)
