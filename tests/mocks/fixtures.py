from __future__ import annotations
from pathlib import Path

import pytest

from synctape.auth import CredentialStore, TokenRefreshCoordinator
from synctape.db import Database
from .stub_clients import StubClient, StubRefresher


class FakeClock:
    """Settable epoch-seconds clock."""

    def __init__(self, now: float = 1_700_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db(tmp_path: Path):
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def clients():
    return {"spotify": StubClient("spotify"), "apple_music": StubClient("apple_music")}


@pytest.fixture
def refresher():
    return StubRefresher("spotify")


@pytest.fixture
def store(db, clock):
    return CredentialStore(db, clock=clock)


@pytest.fixture
def tokens(store, refresher, clock):
    return TokenRefreshCoordinator(store, {"spotify": refresher}, clock=clock)
