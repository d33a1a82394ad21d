"""Service layer: reconciliation, batch sync, import, publish and delete."""

from .reconcile_service import ReconciliationEngine, SyncOutcome, ServiceError, SyncState, select_authoritative
from .batch_service import sync_stale_playlists, BatchSyncResult
from .share_service import share_playlist, ShareResult
from .publish_service import publish_playlist, PublishResult
from .playlist_service import delete_playlist

__all__ = [
    "ReconciliationEngine",
    "SyncOutcome",
    "ServiceError",
    "SyncState",
    "select_authoritative",
    "sync_stale_playlists",
    "BatchSyncResult",
    "share_playlist",
    "ShareResult",
    "publish_playlist",
    "PublishResult",
    "delete_playlist",
]
