"""Playlist reconciliation.

One sync run for a canonical playlist:

  FETCHING                 every link's external playlist is fetched in
                           parallel (token refresh first); failures are
                           recorded per link and the link is dropped from
                           the candidates
  SELECTING_AUTHORITATIVE  the link synced most recently wins (never-synced
                           counts as 0, ties go to the earliest link)
  REWRITING                snapshot tracks are resolved to canonical ids and
                           the membership replaced in one transaction
  PROPAGATING              the canonical order is pushed to every other link,
                           translated to that service's ids, including links
                           whose fetch failed

The run ends in DONE, PARTIAL_FAILURE (canonical state advanced but some
link failed) or FAILED (nothing reachable, or the store write failed). No
link failure aborts the others.

Errors are reported once per link. A link whose fetch failed keeps that
error even when the push to it then succeeds; a failed push replaces it.
"""
from __future__ import annotations

import sqlite3
import time
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..auth import TokenRefreshCoordinator
from ..db import DatabaseInterface, PlaylistLinkRow
from ..errors import (
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    UnimplementedError,
    error_kind,
)
from ..identity import TrackIdentityResolver
from ..links import LinkRegistry
from ..providers.base import PlaylistSnapshot, StreamingServiceClient
from ..utils.logging_helpers import format_sync_summary

logger = logging.getLogger(__name__)

NO_SERVICE_REACHABLE = "no service reachable"


class SyncState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    SELECTING_AUTHORITATIVE = "selecting_authoritative"
    REWRITING = "rewriting"
    PROPAGATING = "propagating"
    DONE = "done"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"


@dataclass
class ServiceError:
    service: str
    link_id: int
    error: str
    kind: str = "error"
    phase: str = "fetch"  # step that last failed for the link: fetch or push

    def to_dict(self) -> Dict[str, Any]:
        return {
            'service': self.service,
            'link_id': self.link_id,
            'error': self.error,
            'kind': self.kind,
            'phase': self.phase,
        }


@dataclass
class SyncOutcome:
    """Result of one sync run (the structure reported to callers)."""
    playlist_id: int
    success: bool = False
    state: SyncState = SyncState.IDLE
    track_count: int = 0
    authoritative_service: str | None = None
    synced_services: List[str] = field(default_factory=list)
    errors: List[ServiceError] = field(default_factory=list)
    skipped_tracks: Dict[str, int] = field(default_factory=dict)
    failure: str | None = None
    http_status: int = 200

    def to_dict(self) -> Dict[str, Any]:
        return {
            'playlist_id': self.playlist_id,
            'success': self.success,
            'state': self.state.value,
            'track_count': self.track_count,
            'authoritative_service': self.authoritative_service,
            'synced_services': list(self.synced_services),
            'errors': [e.to_dict() for e in self.errors],
            'skipped_tracks': dict(self.skipped_tracks),
            'failure': self.failure,
        }


@dataclass
class _Fetched:
    link: PlaylistLinkRow
    access_token: str
    snapshot: PlaylistSnapshot


def select_authoritative(links: Sequence[PlaylistLinkRow]) -> PlaylistLinkRow:
    """Freshest link by last_synced_at (None = 0); ties -> lowest link id."""
    best: Optional[PlaylistLinkRow] = None
    for link in sorted(links, key=lambda l: l.id):
        if best is None or (link.last_synced_at or 0) > (best.last_synced_at or 0):
            best = link
    if best is None:
        raise ValueError("select_authoritative() requires at least one link")
    return best


class ReconciliationEngine:
    """Synchronize a canonical playlist with all of its linked external playlists.

    Args:
        db: Store for playlists, links and tracks
        clients: Service name -> API client (built once at startup)
        tokens: Token refresh coordinator handing out per-link access tokens
        resolver: Track identity resolver (defaults to one over ``db``)
        links: Link registry (defaults to one over ``db``)
        max_workers: Per-link fetch/push parallelism
        budget_seconds: Wall-clock budget for one sync run (fetch and push together)
    """

    def __init__(
        self,
        db: DatabaseInterface,
        clients: Mapping[str, StreamingServiceClient],
        tokens: TokenRefreshCoordinator,
        resolver: TrackIdentityResolver | None = None,
        links: LinkRegistry | None = None,
        max_workers: int = 4,
        budget_seconds: float = 120,
        clock: Callable[[], float] = time.time,
    ):
        self.db = db
        self.clients = dict(clients)
        self.tokens = tokens
        self.clock = clock
        self.resolver = resolver or TrackIdentityResolver(db, clock=clock)
        self.links = links or LinkRegistry(db, clock=clock)
        self.max_workers = max(1, max_workers)
        self.budget_seconds = budget_seconds

    # ---------------- helpers -----------------

    def _transition(self, outcome: SyncOutcome, state: SyncState) -> None:
        logger.debug(f"Playlist {outcome.playlist_id}: {outcome.state.value} -> {state.value}")
        outcome.state = state

    def _client_for(self, service: str) -> StreamingServiceClient:
        client = self.clients.get(service)
        if client is None:
            raise UnimplementedError(f"No client available for service '{service}'", service=service)
        return client

    def _record_error(self, outcome: SyncOutcome, link: PlaylistLinkRow, exc: BaseException, phase: str) -> None:
        """Record one error per link; a push failure replaces that link's fetch failure."""
        logger.warning(f"Playlist {outcome.playlist_id}: {phase} failed for {link.service} link {link.id}: {exc}")
        error = ServiceError(
            service=link.service,
            link_id=link.id,
            error=str(exc) or type(exc).__name__,
            kind=error_kind(exc),
            phase=phase,
        )
        for i, existing in enumerate(outcome.errors):
            if existing.link_id == link.id:
                outcome.errors[i] = error
                return
        outcome.errors.append(error)

    def _run_parallel(
        self, fn: Callable[[PlaylistLinkRow], Any], links: Sequence[PlaylistLinkRow], deadline: float
    ) -> Tuple[Dict[int, Any], Dict[int, BaseException]]:
        """Run ``fn`` per link on the worker pool within the wall-clock budget.

        Returns (results, failures) keyed by link id. Links still running
        when the budget expires are reported as TimeoutError; their threads
        are abandoned, not joined.
        """
        results: Dict[int, Any] = {}
        failures: Dict[int, BaseException] = {}
        if not links:
            return results, failures
        pool = ThreadPoolExecutor(max_workers=min(self.max_workers, len(links)), thread_name_prefix="synctape-link")
        try:
            futures = {pool.submit(fn, link): link for link in links}
            done, not_done = wait(futures, timeout=max(0.0, deadline - time.monotonic()))
            for fut in done:
                link = futures[fut]
                exc = fut.exception()
                if exc is None:
                    results[link.id] = fut.result()
                else:
                    failures[link.id] = exc
            for fut in not_done:
                link = futures[fut]
                fut.cancel()
                failures[link.id] = TimeoutError(
                    f"{link.service} link {link.id} did not finish within {self.budget_seconds}s"
                )
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
        return results, failures

    def _fetch_one(self, link: PlaylistLinkRow) -> _Fetched:
        client = self._client_for(link.service)
        token = self.tokens.access_token_for(link.user_id, link.service)
        snapshot = client.fetch_playlist(link.service_playlist_id, token)
        logger.debug(f"Fetched {len(snapshot.tracks)} tracks from {link.service} link {link.id}")
        return _Fetched(link=link, access_token=token, snapshot=snapshot)

    # ---------------- public API -----------------

    def sync_playlist(self, playlist_id: int, acting_user_id: int | None = None) -> SyncOutcome:
        """Run one reconciliation for ``playlist_id``.

        Raises:
            NotFoundError: Unknown playlist
            ForbiddenError: ``acting_user_id`` neither owns nor links the playlist
            InvalidRequestError: Playlist has no links
        """
        started = time.monotonic()
        playlist = self.db.get_playlist_by_id(playlist_id)
        if playlist is None:
            raise NotFoundError(f"Playlist {playlist_id} not found")
        if acting_user_id is not None and not self.links.user_can_access(playlist, acting_user_id):
            raise ForbiddenError(f"User {acting_user_id} has no access to playlist {playlist_id}")
        links = self.links.links_for(playlist_id)
        if not links:
            raise InvalidRequestError(f"Playlist {playlist_id} has no linked services")

        outcome = SyncOutcome(playlist_id=playlist_id)
        self.db.mark_sync_attempt(playlist_id, int(self.clock()))

        self._transition(outcome, SyncState.FETCHING)
        deadline = started + self.budget_seconds
        fetched_by_id, fetch_failures = self._run_parallel(self._fetch_one, links, deadline)
        for link in links:
            if link.id in fetch_failures:
                self._record_error(outcome, link, fetch_failures[link.id], "fetch")

        self._transition(outcome, SyncState.SELECTING_AUTHORITATIVE)
        fetched: List[_Fetched] = [fetched_by_id[link.id] for link in links if link.id in fetched_by_id]
        if not fetched:
            self._transition(outcome, SyncState.FAILED)
            outcome.failure = NO_SERVICE_REACHABLE
            outcome.http_status = 502
            self._log_summary(outcome, started)
            return outcome
        authoritative_link = select_authoritative([f.link for f in fetched])
        authoritative = fetched_by_id[authoritative_link.id]
        outcome.authoritative_service = authoritative_link.service
        logger.debug(
            f"Playlist {playlist_id}: authoritative is {authoritative_link.service} link {authoritative_link.id} "
            f"(last_synced_at={authoritative_link.last_synced_at})"
        )

        self._transition(outcome, SyncState.REWRITING)
        try:
            track_ids = [
                self.resolver.resolve_or_create(t, authoritative_link.service, t.external_id)
                for t in authoritative.snapshot.tracks
            ]
            synced_at = int(self.clock())
            self.db.set_playlist_tracks(playlist_id, track_ids, synced_at=synced_at)
        except (sqlite3.Error, ValueError) as e:
            logger.error(f"Playlist {playlist_id}: canonical rewrite failed: {e}")
            self._transition(outcome, SyncState.FAILED)
            outcome.failure = f"canonical rewrite failed: {e}"
            outcome.http_status = 500
            self._log_summary(outcome, started)
            return outcome
        outcome.track_count = len(track_ids)
        outcome.success = True

        self._transition(outcome, SyncState.PROPAGATING)
        self.links.mark_synced(authoritative_link.id, synced_at)
        outcome.synced_services.append(authoritative_link.service)
        self._propagate(outcome, playlist_id, authoritative_link, links, fetched_by_id, synced_at, deadline)

        self._transition(outcome, SyncState.PARTIAL_FAILURE if outcome.errors else SyncState.DONE)
        self._log_summary(outcome, started)
        return outcome

    def _propagate(
        self,
        outcome: SyncOutcome,
        playlist_id: int,
        authoritative_link: PlaylistLinkRow,
        links: Sequence[PlaylistLinkRow],
        fetched_by_id: Mapping[int, _Fetched],
        synced_at: int,
        deadline: float,
    ) -> None:
        canonical = [row.track for row in self.db.get_playlist_tracks(playlist_id)]
        targets = [link for link in links if link.id != authoritative_link.id]
        payloads: Dict[int, List[str]] = {}
        for link in targets:
            ids = [eid for eid in (t.external_id(link.service) for t in canonical) if eid]
            skipped = len(canonical) - len(ids)
            if skipped:
                outcome.skipped_tracks[link.service] = outcome.skipped_tracks.get(link.service, 0) + skipped
                logger.debug(f"{skipped} tracks have no {link.service} id; omitted from link {link.id}")
            payloads[link.id] = ids

        def push(link: PlaylistLinkRow) -> None:
            client = self._client_for(link.service)
            fetched = fetched_by_id.get(link.id)
            # links that failed to fetch still receive the canonical list
            token = fetched.access_token if fetched else self.tokens.access_token_for(link.user_id, link.service)
            client.replace_playlist_tracks(link.service_playlist_id, payloads[link.id], token)

        results, failures = self._run_parallel(push, targets, deadline)
        for link in targets:
            if link.id in failures:
                self._record_error(outcome, link, failures[link.id], "push")
            elif link.id in results:
                # only pushes that finished inside the budget are stamped
                self.links.mark_synced(link.id, synced_at)
                outcome.synced_services.append(link.service)

    def _log_summary(self, outcome: SyncOutcome, started: float) -> None:
        logger.info(
            format_sync_summary(
                outcome.playlist_id,
                outcome.state.value,
                outcome.track_count,
                len(outcome.synced_services),
                len(outcome.errors),
                authoritative=outcome.authoritative_service,
                duration_seconds=time.monotonic() - started,
            )
        )


__all__ = ["ReconciliationEngine", "SyncOutcome", "ServiceError", "SyncState", "select_authoritative", "NO_SERVICE_REACHABLE"]
