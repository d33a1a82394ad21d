"""Track identity resolution: determinism and ISRC cross-linking."""
from __future__ import annotations
import sqlite3

import pytest

from synctape.identity import TrackIdentityResolver
from tests.mocks.stub_clients import make_track


@pytest.fixture
def resolver(db, clock):
    return TrackIdentityResolver(db, clock=clock)


def test_same_service_id_resolves_to_same_track(resolver, db):
    meta = make_track("sp1", isrc="USRC1")
    first = resolver.resolve_or_create(meta, "spotify", "sp1")
    second = resolver.resolve_or_create(meta, "spotify", "sp1")
    assert first == second
    assert db.count_tracks() == 1


def test_isrc_cross_links_services(resolver, db, clock):
    sp = resolver.resolve_or_create(make_track("sp1", isrc="USRC1"), "spotify", "sp1")
    clock.advance(100)
    am = resolver.resolve_or_create(make_track("am1", isrc="USRC1"), "apple_music", "am1")
    assert am == sp
    row = db.get_track(sp)
    assert row.spotify_id == "sp1"
    assert row.apple_music_id == "am1"
    assert row.last_verified == int(clock())
    assert db.count_tracks() == 1


def test_without_isrc_creates_new_track(resolver, db):
    a = resolver.resolve_or_create(make_track("sp1", name="Same"), "spotify", "sp1")
    b = resolver.resolve_or_create(make_track("am1", name="Same"), "apple_music", "am1")
    assert a != b
    assert db.count_tracks() == 2


def test_titles_are_never_matched(resolver, db):
    a = resolver.resolve_or_create(make_track("sp1", name="Hello", artist="Adele"), "spotify", "sp1")
    b = resolver.resolve_or_create(make_track("sp2", name="Hello", artist="Adele"), "spotify", "sp2")
    assert a != b


def test_new_track_carries_metadata(resolver, db, clock):
    tid = resolver.resolve_or_create(make_track("sp9", name="Title", artist="A, B", isrc="X9"), "spotify", "sp9")
    row = db.get_track(tid)
    assert (row.name, row.artist, row.album, row.isrc, row.duration_ms) == ("Title", "A, B", "Album", "X9", 180000)
    assert row.created_at == int(clock())


@pytest.mark.parametrize("bad_id", ["", "TODO", "  "])
def test_placeholder_ids_rejected(resolver, bad_id):
    with pytest.raises(ValueError):
        resolver.resolve_or_create(make_track("x"), "spotify", bad_id)


def test_unknown_service_rejected(resolver):
    with pytest.raises(ValueError):
        resolver.resolve_or_create(make_track("x"), "tidal", "x")


def test_concurrent_insert_resolves_to_existing_row(db, clock, monkeypatch):
    resolver = TrackIdentityResolver(db, clock=clock)
    winner = resolver.resolve_or_create(make_track("sp1"), "spotify", "sp1")

    # Simulate losing the race: the first lookup misses, the insert collides
    original = db.find_track_by_service_id
    calls = {"n": 0}

    def flaky_find(service, external_id):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return original(service, external_id)

    monkeypatch.setattr(db, "find_track_by_service_id", flaky_find)
    assert resolver.resolve_or_create(make_track("sp1"), "spotify", "sp1") == winner
    assert db.count_tracks() == 1


def test_integrity_error_propagates_when_row_still_missing(db, clock, monkeypatch):
    resolver = TrackIdentityResolver(db, clock=clock)

    def failing_create(track, now):
        raise sqlite3.IntegrityError("boom")

    monkeypatch.setattr(db, "create_track", failing_create)
    with pytest.raises(sqlite3.IntegrityError):
        resolver.resolve_or_create(make_track("sp1"), "spotify", "sp1")
