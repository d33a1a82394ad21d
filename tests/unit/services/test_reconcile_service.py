"""Reconciliation engine: authority selection, rewrite and propagation."""
from __future__ import annotations
import sqlite3
import time

import pytest

from synctape.db import PlaylistLinkRow
from synctape.errors import (
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    ProviderError,
    UpstreamUnavailableError,
)
from synctape.services import ReconciliationEngine, SyncState, select_authoritative
from tests.mocks.stub_clients import make_track

OWNER = 1


def _link(id, last_synced_at):
    return PlaylistLinkRow(id=id, playlist_id=1, user_id=1, service="spotify",
                           service_playlist_id=f"p{id}", last_synced_at=last_synced_at)


class TestSelectAuthoritative:
    def test_latest_sync_wins(self):
        links = [_link(1, None), _link(2, 100), _link(3, 200)]
        assert select_authoritative(links).id == 3

    def test_all_null_is_deterministic_lowest_id(self):
        links = [_link(5, None), _link(2, None), _link(9, None)]
        assert select_authoritative(links).id == 2
        assert select_authoritative(list(reversed(links))).id == 2

    def test_tie_goes_to_earliest_link(self):
        assert select_authoritative([_link(4, 100), _link(3, 100)]).id == 3

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            select_authoritative([])


@pytest.fixture
def engine(db, clients, tokens, clock):
    return ReconciliationEngine(db, clients, tokens, max_workers=4, budget_seconds=5, clock=clock)


def _connect(store, user_id, service, expires_in=3600, clock_now=1_700_000_000):
    store.save(user_id, service, f"at-{user_id}-{service}", f"rt-{user_id}", clock_now + expires_in)


def _seed(db, store, clock, links):
    """Create a playlist owned by OWNER with (user, service, external id, last_synced_at) links."""
    pid = db.create_playlist("Mix", "desc", OWNER, int(clock()))
    ids = []
    for user_id, service, ext_id, last in links:
        ids.append(db.create_playlist_link(pid, user_id, service, ext_id, not ids, int(clock()), last_synced_at=last))
        if store.get(user_id, service) is None:
            _connect(store, user_id, service, clock_now=int(clock()))
    return pid, ids


class TestPreconditions:
    def test_unknown_playlist(self, engine):
        with pytest.raises(NotFoundError):
            engine.sync_playlist(404)

    def test_stranger_forbidden(self, engine, db, store, clock):
        pid, _ = _seed(db, store, clock, [(OWNER, "spotify", "sp-a", None)])
        with pytest.raises(ForbiddenError):
            engine.sync_playlist(pid, acting_user_id=99)

    def test_linked_user_allowed(self, engine, db, store, clock, clients):
        clients["spotify"].add_playlist("sp-a", [])
        pid, _ = _seed(db, store, clock, [(OWNER, "spotify", "sp-a", None), (7, "spotify", "sp-b", None)])
        clients["spotify"].add_playlist("sp-b", [])
        assert engine.sync_playlist(pid, acting_user_id=7).success

    def test_no_links(self, engine, db, clock):
        pid = db.create_playlist("Empty", None, OWNER, int(clock()))
        with pytest.raises(InvalidRequestError):
            engine.sync_playlist(pid, acting_user_id=OWNER)


class TestSync:
    def test_freshest_link_becomes_canonical_and_propagates(self, engine, db, store, clock, clients):
        sp, am = clients["spotify"], clients["apple_music"]
        sp.add_playlist("sp-old", [make_track("x1", isrc="I-X")])
        am.add_playlist("am-mid", [make_track("am-y", isrc="I-Y")])
        sp.add_playlist("sp-new", [make_track("s2", isrc="I-2"), make_track("s1", isrc="I-1")])
        pid, (l_null, l_100, l_200) = _seed(db, store, clock, [
            (OWNER, "spotify", "sp-old", None),
            (2, "apple_music", "am-mid", 100),
            (3, "spotify", "sp-new", 200),
        ])

        outcome = engine.sync_playlist(pid)

        assert outcome.state == SyncState.DONE
        assert outcome.success is True
        assert outcome.http_status == 200
        assert outcome.authoritative_service == "spotify"
        assert outcome.track_count == 2
        canonical = db.get_playlist_tracks(pid)
        assert [r.track.spotify_id for r in canonical] == ["s2", "s1"]
        # spotify link of user 1 receives the spotify ids, apple link gets nothing it can address
        assert sp.replaced["sp-old"] == ["s2", "s1"]
        assert am.replaced["am-mid"] == []
        assert outcome.skipped_tracks == {"apple_music": 2}
        assert sorted(outcome.synced_services) == ["apple_music", "spotify", "spotify"]
        now = int(clock())
        assert {l.id: l.last_synced_at for l in db.get_playlist_links(pid)} == {l_null: now, l_100: now, l_200: now}
        assert db.get_playlist_by_id(pid).last_synced_at == now

    def test_isrc_overlap_is_pushed_across_services(self, engine, db, store, clock, clients):
        sp, am = clients["spotify"], clients["apple_music"]
        db.create_track({"name": "Y", "artist": "A", "isrc": "I-Y", "apple_music_id": "am-y"}, 1)
        sp.add_playlist("sp", [make_track("s-y", isrc="I-Y"), make_track("s-z", isrc="I-Z")])
        am.add_playlist("am", [])
        pid, _ = _seed(db, store, clock, [(OWNER, "spotify", "sp", 500), (2, "apple_music", "am", 100)])

        outcome = engine.sync_playlist(pid)

        assert am.replaced["am"] == ["am-y"]
        assert outcome.skipped_tracks == {"apple_music": 1}
        track = db.get_playlist_tracks(pid)[0].track
        assert (track.spotify_id, track.apple_music_id) == ("s-y", "am-y")

    def test_all_never_synced_uses_earliest_link(self, engine, db, store, clock, clients):
        clients["spotify"].add_playlist("first", [make_track("f1")])
        clients["spotify"].add_playlist("second", [make_track("s1")])
        pid, _ = _seed(db, store, clock, [(OWNER, "spotify", "first", None), (2, "spotify", "second", None)])
        engine.sync_playlist(pid)
        assert [r.track.spotify_id for r in db.get_playlist_tracks(pid)] == ["f1"]
        assert clients["spotify"].replaced == {"second": ["f1"]}

    def test_one_push_failure_is_isolated(self, engine, db, store, clock, clients):
        sp, am = clients["spotify"], clients["apple_music"]
        sp.add_playlist("src", [make_track("a"), make_track("b")])
        sp.add_playlist("other", [])
        am.add_playlist("am", [])
        am.fail_replace["am"] = ProviderError("boom", service="apple_music", status_code=400)
        pid, (l_src, l_am, l_other) = _seed(db, store, clock, [
            (OWNER, "spotify", "src", 300), (2, "apple_music", "am", 10), (3, "spotify", "other", 20),
        ])

        outcome = engine.sync_playlist(pid)

        assert outcome.state == SyncState.PARTIAL_FAILURE
        assert outcome.success is True
        assert len(outcome.errors) == 1
        err = outcome.errors[0]
        assert (err.service, err.link_id, err.kind) == ("apple_music", l_am, "provider_error")
        assert sp.replaced["other"] == ["a", "b"]
        assert [r.track.spotify_id for r in db.get_playlist_tracks(pid)] == ["a", "b"]
        stamps = {l.id: l.last_synced_at for l in db.get_playlist_links(pid)}
        assert stamps[l_am] == 10
        assert stamps[l_other] == int(clock())

    def test_fetch_failure_still_receives_canonical_list(self, engine, db, store, clock, clients):
        sp = clients["spotify"]
        sp.add_playlist("src", [make_track("a")])
        sp.fail_fetch["down"] = UpstreamUnavailableError("transient 503", service="spotify")
        pid, (l_src, l_down) = _seed(db, store, clock, [(OWNER, "spotify", "src", 200), (2, "spotify", "down", 100)])

        outcome = engine.sync_playlist(pid)

        assert outcome.state == SyncState.PARTIAL_FAILURE
        assert sp.replaced["down"] == ["a"]
        assert [(e.link_id, e.kind, e.phase) for e in outcome.errors] == [(l_down, "upstream_unavailable", "fetch")]
        assert sorted(outcome.synced_services) == ["spotify", "spotify"]
        stamps = {l.id: l.last_synced_at for l in db.get_playlist_links(pid)}
        assert stamps == {l_src: int(clock()), l_down: int(clock())}

    def test_fetch_and_push_failure_reported_once(self, engine, db, store, clock, clients):
        sp = clients["spotify"]
        sp.add_playlist("src", [make_track("a")])
        sp.fail_fetch["down"] = UpstreamUnavailableError("503", service="spotify")
        sp.fail_replace["down"] = ProviderError("rejected", service="spotify", status_code=400)
        pid, (_, l_down) = _seed(db, store, clock, [(OWNER, "spotify", "src", 200), (2, "spotify", "down", 100)])

        outcome = engine.sync_playlist(pid)

        assert [(e.link_id, e.kind, e.phase) for e in outcome.errors] == [(l_down, "provider_error", "push")]
        assert outcome.to_dict()["errors"][0]["phase"] == "push"
        assert {l.id: l.last_synced_at for l in db.get_playlist_links(pid)}[l_down] == 100

    def test_sync_stamps_attempt_even_when_nothing_reachable(self, engine, db, store, clock, clients):
        pid, _ = _seed(db, store, clock, [(OWNER, "spotify", "gone", None)])
        outcome = engine.sync_playlist(pid)
        assert outcome.state == SyncState.FAILED
        playlist = db.get_playlist_by_id(pid)
        assert playlist.last_attempted_at == int(clock())
        assert playlist.last_synced_at is None

    def test_no_reachable_service_leaves_membership_unchanged(self, engine, db, store, clock, clients):
        sp, am = clients["spotify"], clients["apple_music"]
        pid, _ = _seed(db, store, clock, [(OWNER, "spotify", "gone", None), (2, "apple_music", "gone-too", None)])
        existing = db.create_track({"name": "Keep", "spotify_id": "keep"}, 1)
        db.set_playlist_tracks(pid, [existing], synced_at=42)

        outcome = engine.sync_playlist(pid)

        assert outcome.state == SyncState.FAILED
        assert outcome.success is False
        assert outcome.failure == "no service reachable"
        assert outcome.http_status == 502
        assert len(outcome.errors) == 2
        assert [r.track.id for r in db.get_playlist_tracks(pid)] == [existing]
        assert db.get_playlist_by_id(pid).last_synced_at == 42
        assert sp.replaced == {} and am.replaced == {}

    def test_store_failure_is_hard_failure(self, engine, db, store, clock, clients, monkeypatch):
        clients["spotify"].add_playlist("src", [make_track("a")])
        clients["spotify"].add_playlist("dst", [])
        pid, _ = _seed(db, store, clock, [(OWNER, "spotify", "src", 5), (2, "spotify", "dst", None)])

        def broken(*args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(db, "set_playlist_tracks", broken)
        outcome = engine.sync_playlist(pid)
        assert outcome.state == SyncState.FAILED
        assert outcome.http_status == 500
        assert clients["spotify"].replaced == {}

    def test_missing_credential_and_unknown_client(self, engine, db, store, clock, clients):
        clients["spotify"].add_playlist("src", [make_track("a")])
        pid, _ = _seed(db, store, clock, [(OWNER, "spotify", "src", 5)])
        l_nocred = db.create_playlist_link(pid, 8, "spotify", "nocred", False, int(clock()))
        l_yt = db.create_playlist_link(pid, OWNER, "youtube_music", "yt", False, int(clock()))
        store.save(OWNER, "youtube_music", "yt-token", None, None)

        outcome = engine.sync_playlist(pid)

        kinds = {e.link_id: e.kind for e in outcome.errors}
        assert kinds == {l_nocred: "auth_missing", l_yt: "unimplemented"}
        assert outcome.state == SyncState.PARTIAL_FAILURE

    def test_slow_link_times_out(self, db, store, clock, clients, tokens):
        engine = ReconciliationEngine(db, clients, tokens, budget_seconds=0.3, clock=clock)
        clients["spotify"].add_playlist("fast", [make_track("a")])
        clients["spotify"].add_playlist("slow", [make_track("b")])
        clients["spotify"].fetch_delay["slow"] = 2.0
        pid, (_, l_slow) = _seed(db, store, clock, [(OWNER, "spotify", "fast", None), (2, "spotify", "slow", 900)])

        outcome = engine.sync_playlist(pid)

        assert [(e.link_id, e.kind) for e in outcome.errors] == [(l_slow, "timeout")]
        assert [r.track.spotify_id for r in db.get_playlist_tracks(pid)] == ["a"]

    def test_expired_token_refreshed_once_and_reused_for_push(self, engine, db, store, clock, clients, refresher):
        sp = clients["spotify"]
        sp.add_playlist("src", [make_track("a")])
        sp.add_playlist("dst", [])
        pid, _ = _seed(db, store, clock, [(OWNER, "spotify", "src", 10), (2, "spotify", "dst", 1)])
        store.save(2, "spotify", "stale", "rt-2", int(clock()) + 5)

        engine.sync_playlist(pid)

        assert refresher.calls == ["rt-2"]
        assert "fresh-1" in sp.tokens_seen
        assert store.get(2, "spotify").access_token == "fresh-1"

    def test_outcome_to_dict(self, engine, db, store, clock, clients):
        clients["spotify"].add_playlist("src", [make_track("a")])
        pid, _ = _seed(db, store, clock, [(OWNER, "spotify", "src", None)])
        data = engine.sync_playlist(pid).to_dict()
        assert data["state"] == "done"
        assert data["track_count"] == 1
        assert data["errors"] == []
        assert data["synced_services"] == ["spotify"]


def test_push_finishing_after_budget_does_not_stamp_link(db, store, clock, clients, tokens):
    engine = ReconciliationEngine(db, clients, tokens, budget_seconds=0.5, clock=clock)
    sp = clients["spotify"]
    sp.add_playlist("src", [make_track("a")])
    sp.add_playlist("dst", [])
    sp.replace_delay["dst"] = 1.0
    pid, (_, l_dst) = _seed(db, store, clock, [(OWNER, "spotify", "src", 200), (2, "spotify", "dst", 100)])

    outcome = engine.sync_playlist(pid)
    assert [(e.link_id, e.kind) for e in outcome.errors] == [(l_dst, "timeout")]

    # let the abandoned push thread finish
    time.sleep(1.2)
    assert sp.replaced["dst"] == ["a"]
    assert {l.id: l.last_synced_at for l in db.get_playlist_links(pid)}[l_dst] == 100
