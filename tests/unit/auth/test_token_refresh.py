"""Token refresh coordinator behaviour."""
from __future__ import annotations
import threading

import pytest
import requests

from synctape.auth import CredentialStore, TokenRefreshCoordinator
from synctape.errors import AuthMissingError, ProviderError
from synctape.providers.spotify import SpotifyTokenRefresher
from tests.mocks.mock_spotify import FakeResponse, FakeSession
from tests.mocks.stub_clients import StubRefresher


def _save(store: CredentialStore, clock, expires_in: int | None, refresh_token: str | None = "rt-old"):
    expires_at = None if expires_in is None else int(clock()) + expires_in
    return store.save(1, "spotify", "at-old", refresh_token, expires_at)


def test_valid_token_returned_without_network(store, tokens, refresher, clock):
    cred = _save(store, clock, expires_in=3600)
    assert tokens.get_valid_access_token(cred) == "at-old"
    assert refresher.calls == []


def test_token_inside_skew_is_refreshed_and_persisted(store, tokens, refresher, clock):
    cred = _save(store, clock, expires_in=30)
    assert tokens.get_valid_access_token(cred) == "fresh-1"
    assert refresher.calls == ["rt-old"]
    stored = store.get(1, "spotify")
    assert stored.access_token == "fresh-1"
    assert stored.refresh_token == "rotated-1"
    assert stored.expires_at == int(clock()) + 3600


def test_skew_boundary(store, refresher, clock):
    coordinator = TokenRefreshCoordinator(store, {"spotify": refresher}, skew_seconds=60, clock=clock)
    cred = _save(store, clock, expires_in=61)
    assert coordinator.get_valid_access_token(cred) == "at-old"
    clock.advance(1)
    assert coordinator.get_valid_access_token(store.get(1, "spotify")) == "fresh-1"


def test_refresh_token_kept_when_provider_does_not_rotate(store, clock):
    refresher = StubRefresher(rotate=False)
    coordinator = TokenRefreshCoordinator(store, {"spotify": refresher}, clock=clock)
    cred = _save(store, clock, expires_in=0)
    assert coordinator.get_valid_access_token(cred) == "fresh-1"
    assert store.get(1, "spotify").refresh_token == "rt-old"


def test_no_refresh_token_returns_stale_token(store, tokens, refresher, clock):
    cred = _save(store, clock, expires_in=-100, refresh_token=None)
    assert tokens.get_valid_access_token(cred) == "at-old"
    assert refresher.calls == []
    assert store.get(1, "spotify").access_token == "at-old"


def test_unknown_expiry_with_refresh_token_refreshes(store, tokens, refresher, clock):
    cred = _save(store, clock, expires_in=None)
    assert tokens.get_valid_access_token(cred) == "fresh-1"
    assert len(refresher.calls) == 1


@pytest.mark.parametrize("error", [
    ProviderError("invalid_grant", service="spotify", status_code=400),
    requests.ConnectionError("down"),
])
def test_refresh_failure_degrades_to_stale_token(store, clock, error, caplog):
    coordinator = TokenRefreshCoordinator(store, {"spotify": StubRefresher(error=error)}, clock=clock)
    cred = _save(store, clock, expires_in=10)
    with caplog.at_level("WARNING"):
        assert coordinator.get_valid_access_token(cred) == "at-old"
    assert "Token refresh failed" in caplog.text
    assert store.get(1, "spotify").access_token == "at-old"


def test_missing_refresher_degrades_to_stale_token(store, clock):
    coordinator = TokenRefreshCoordinator(store, {}, clock=clock)
    cred = _save(store, clock, expires_in=10)
    assert coordinator.get_valid_access_token(cred) == "at-old"


def test_access_token_for_missing_credential(tokens):
    with pytest.raises(AuthMissingError) as exc_info:
        tokens.access_token_for(42, "spotify")
    assert exc_info.value.http_status == 403
    assert exc_info.value.service == "spotify"


def test_concurrent_callers_share_one_refresh(store, clock):
    refresher = StubRefresher(delay=0.2)
    coordinator = TokenRefreshCoordinator(store, {"spotify": refresher}, clock=clock)
    cred = _save(store, clock, expires_in=5)
    results = []
    barrier = threading.Barrier(4)

    def worker():
        barrier.wait()
        results.append(coordinator.get_valid_access_token(cred))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert len(refresher.calls) == 1
    assert results == ["fresh-1"] * 4


def test_malformed_token_response_degrades_to_stale_token(store, clock):
    session = FakeSession([FakeResponse(200, {})])
    coordinator = TokenRefreshCoordinator(store, {"spotify": SpotifyTokenRefresher("cid", "secret", session=session)}, clock=clock)
    _save(store, clock, expires_in=10)
    assert coordinator.access_token_for(1, "spotify") == "at-old"
    assert store.get(1, "spotify").access_token == "at-old"
