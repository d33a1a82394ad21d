"""Scheduled sync of stale playlists."""
from __future__ import annotations

import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List

from ..db import DatabaseInterface
from ..utils.logging_helpers import log_progress
from .reconcile_service import ReconciliationEngine, SyncOutcome, SyncState

logger = logging.getLogger(__name__)


@dataclass
class BatchSyncResult:
    considered: int = 0
    succeeded: int = 0
    partial: int = 0
    failed: int = 0
    outcomes: List[SyncOutcome] = field(default_factory=list)
    exceptions: Dict[int, str] = field(default_factory=dict)

    def to_dict(self):
        return {
            'considered': self.considered,
            'succeeded': self.succeeded,
            'partial': self.partial,
            'failed': self.failed,
            'outcomes': [o.to_dict() for o in self.outcomes],
            'exceptions': {str(k): v for k, v in self.exceptions.items()},
        }


def sync_stale_playlists(
    db: DatabaseInterface,
    engine: ReconciliationEngine,
    staleness_hours: float = 24,
    limit: int = 100,
    clock: Callable[[], float] = time.time,
) -> BatchSyncResult:
    """Sync playlists never synced or last synced more than ``staleness_hours`` ago.

    Never-synced playlists go first, then oldest first, capped at ``limit``.
    Each playlist runs in isolation: an exception is logged, counted as a
    failure and the batch moves on.
    """
    older_than = int(clock() - staleness_hours * 3600)
    playlist_ids = db.get_stale_playlist_ids(older_than, limit)
    result = BatchSyncResult(considered=len(playlist_ids))
    logger.info(f"Batch sync: {len(playlist_ids)} stale playlists (older than {staleness_hours}h, limit {limit})")
    started = time.monotonic()
    for idx, playlist_id in enumerate(playlist_ids, start=1):
        try:
            outcome = engine.sync_playlist(playlist_id)
        except Exception as e:
            logger.error(f"Batch sync: playlist {playlist_id} raised {type(e).__name__}: {e}")
            result.failed += 1
            result.exceptions[playlist_id] = str(e)
        else:
            result.outcomes.append(outcome)
            if outcome.state == SyncState.DONE:
                result.succeeded += 1
            elif outcome.state == SyncState.PARTIAL_FAILURE:
                result.partial += 1
            else:
                result.failed += 1
        log_progress(
            idx,
            len(playlist_ids),
            succeeded=result.succeeded,
            partial=result.partial,
            failed=result.failed,
            elapsed_seconds=time.monotonic() - started,
        )
    return result


__all__ = ["sync_stale_playlists", "BatchSyncResult"]
