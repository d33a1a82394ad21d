from __future__ import annotations
import sqlite3
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence
from .interface import DatabaseInterface
from .models import (
    SERVICE_COLUMNS,
    service_column,
    TrackRow,
    PlaylistRow,
    PlaylistTrackRow,
    PlaylistLinkRow,
    CredentialRow,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "2"

SCHEMA = [
    "PRAGMA journal_mode=WAL;",
    # Canonical tracks: one nullable external-id column per supported service, each UNIQUE
    "CREATE TABLE IF NOT EXISTS tracks (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT, artist TEXT, album TEXT, isrc TEXT, duration_ms INTEGER, spotify_id TEXT UNIQUE, apple_music_id TEXT UNIQUE, youtube_music_id TEXT UNIQUE, created_at INTEGER NOT NULL, last_verified INTEGER NOT NULL);",
    "CREATE TABLE IF NOT EXISTS playlists (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL, description TEXT, owner_id INTEGER NOT NULL, created_at INTEGER NOT NULL, updated_at INTEGER NOT NULL, last_synced_at INTEGER, last_attempted_at INTEGER);",
    "CREATE TABLE IF NOT EXISTS playlist_tracks (playlist_id INTEGER NOT NULL, position INTEGER NOT NULL, track_id INTEGER NOT NULL, added_at INTEGER, PRIMARY KEY(playlist_id, position));",
    "CREATE TABLE IF NOT EXISTS playlist_links (id INTEGER PRIMARY KEY AUTOINCREMENT, playlist_id INTEGER NOT NULL, user_id INTEGER NOT NULL, service TEXT NOT NULL, service_playlist_id TEXT NOT NULL, is_source INTEGER NOT NULL DEFAULT 0, last_synced_at INTEGER, created_at INTEGER NOT NULL, UNIQUE(playlist_id, service, user_id));",
    "CREATE TABLE IF NOT EXISTS credentials (user_id INTEGER NOT NULL, service TEXT NOT NULL, access_token TEXT NOT NULL, refresh_token TEXT, expires_at INTEGER, service_user_id TEXT, created_at INTEGER NOT NULL, updated_at INTEGER NOT NULL, PRIMARY KEY(user_id, service));",
    "CREATE INDEX IF NOT EXISTS idx_tracks_isrc ON tracks(isrc);",
    "CREATE INDEX IF NOT EXISTS idx_playlist_tracks_track ON playlist_tracks(track_id);",
    "CREATE INDEX IF NOT EXISTS idx_playlist_links_playlist ON playlist_links(playlist_id);",
    "CREATE INDEX IF NOT EXISTS idx_playlists_last_synced ON playlists(last_synced_at);",
    # Metadata table
    "CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT);",
]

_TRACK_COLUMNS = "t.id, t.name, t.artist, t.album, t.isrc, t.duration_ms, t.spotify_id, t.apple_music_id, t.youtube_music_id, t.created_at, t.last_verified"


class Database(DatabaseInterface):
    """SQLite store shared by the engine and its worker threads.

    One connection is used from several threads (token refresh persists
    credentials from fetch workers), so every statement runs under an RLock.
    """

    def __init__(self, path: Path):
        self.path = path
        if not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(path, timeout=30, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._tx_depth = 0
        self._closed = False
        self._init_schema()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        for stmt in SCHEMA:
            cur.execute(stmt)
        self._ensure_column("playlists", "last_attempted_at", "INTEGER")
        cur.execute("INSERT OR REPLACE INTO meta(key,value) VALUES('schema_version',?)", (SCHEMA_VERSION,))
        self.conn.commit()

    def _ensure_column(self, table: str, column: str, col_type: str):
        cur = self.conn.execute(f"PRAGMA table_info({table})")
        if column not in {row[1] for row in cur.fetchall()}:
            logger.info(f"Migrating {table}: adding column {column}")
            self.conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}")

    def _execute_with_lock_handling(self, sql: str, params: Any = None):
        """Execute SQL with better diagnostics on database lock (but let SQLite retry)."""
        try:
            with self._lock:
                if params is not None:
                    return self.conn.execute(sql, params)
                return self.conn.execute(sql)
        except sqlite3.OperationalError as e:
            if "database is locked" in str(e).lower():
                # Log diagnostic info but re-raise to let calling code handle it
                logger.warning("Database lock detected - SQLite will retry for up to 30 seconds")
                logger.warning("If this persists, check for another synctape process holding a write transaction")
            raise

    def _write(self, sql: str, params: Any = None) -> sqlite3.Cursor:
        """Single-statement write committed immediately."""
        with self.transaction():
            return self._execute_with_lock_handling(sql, params)

    def _fetchone(self, sql: str, params: Any = None):
        with self._lock:
            return self._execute_with_lock_handling(sql, params).fetchone()

    def _fetchall(self, sql: str, params: Any = None) -> List[sqlite3.Row]:
        with self._lock:
            return self._execute_with_lock_handling(sql, params).fetchall()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the connection for a multi-statement atomic batch.

        Commits on success, rolls back on any exception. Nested use joins
        the outer transaction.
        """
        with self._lock:
            outermost = self._tx_depth == 0
            self._tx_depth += 1
            try:
                yield self.conn
            except Exception:
                if outermost:
                    self.conn.rollback()
                raise
            else:
                if outermost:
                    self.conn.commit()
            finally:
                self._tx_depth -= 1

    def commit(self):
        with self._lock:
            self.conn.commit()

    # --- Tracks ---

    def find_track_by_service_id(self, service: str, external_id: str) -> Optional[TrackRow]:
        column = service_column(service)
        row = self._fetchone(f"SELECT {_TRACK_COLUMNS} FROM tracks t WHERE t.{column} = ?", (external_id,))
        return TrackRow.from_row(row) if row else None

    def find_track_by_isrc(self, isrc: str) -> Optional[TrackRow]:
        row = self._fetchone(f"SELECT {_TRACK_COLUMNS} FROM tracks t WHERE t.isrc = ? ORDER BY t.id LIMIT 1", (isrc,))
        return TrackRow.from_row(row) if row else None

    def create_track(self, track: Dict[str, Any], now: int) -> int:
        columns = ["name", "artist", "album", "isrc", "duration_ms"]
        values = [track.get(c) for c in columns]
        for column in SERVICE_COLUMNS.values():
            if track.get(column):
                columns.append(column)
                values.append(track[column])
        columns += ["created_at", "last_verified"]
        values += [now, now]
        placeholders = ",".join("?" * len(columns))
        cur = self._write(f"INSERT INTO tracks({','.join(columns)}) VALUES({placeholders})", values)
        return int(cur.lastrowid)

    def set_track_service_id(self, track_id: int, service: str, external_id: str, now: int) -> None:
        column = service_column(service)
        self._write(f"UPDATE tracks SET {column}=?, last_verified=? WHERE id=?", (external_id, now, track_id))

    def get_track(self, track_id: int) -> Optional[TrackRow]:
        row = self._fetchone(f"SELECT {_TRACK_COLUMNS} FROM tracks t WHERE t.id = ?", (track_id,))
        return TrackRow.from_row(row) if row else None

    def count_tracks(self) -> int:
        return self._fetchone("SELECT COUNT(*) FROM tracks")[0]

    # --- Playlists ---

    def create_playlist(self, name: str, description: str | None, owner_id: int, now: int) -> int:
        cur = self._write(
            "INSERT INTO playlists(name, description, owner_id, created_at, updated_at) VALUES(?,?,?,?,?)",
            (name, description, owner_id, now, now),
        )
        return int(cur.lastrowid)

    def get_playlist_by_id(self, playlist_id: int) -> Optional[PlaylistRow]:
        sql = """
        SELECT p.id, p.name, p.description, p.owner_id, p.created_at, p.updated_at, p.last_synced_at, p.last_attempted_at,
               (SELECT COUNT(*) FROM playlist_tracks pt WHERE pt.playlist_id = p.id) AS track_count
        FROM playlists p
        WHERE p.id = ?
        """
        row = self._fetchone(sql, (playlist_id,))
        return PlaylistRow.from_row(row) if row else None

    def get_playlist_tracks(self, playlist_id: int) -> List[PlaylistTrackRow]:
        sql = f"""
        SELECT pt.position, {_TRACK_COLUMNS}
        FROM playlist_tracks pt
        JOIN tracks t ON t.id = pt.track_id
        WHERE pt.playlist_id = ?
        ORDER BY pt.position
        """
        return [PlaylistTrackRow.from_row(row) for row in self._fetchall(sql, (playlist_id,))]

    def set_playlist_tracks(self, playlist_id: int, track_ids: Sequence[int], synced_at: int | None = None) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM playlist_tracks WHERE playlist_id=?", (playlist_id,))
            conn.executemany(
                "INSERT INTO playlist_tracks(playlist_id, position, track_id, added_at) VALUES(?,?,?,?)",
                [(playlist_id, pos, tid, synced_at) for pos, tid in enumerate(track_ids)],
            )
            if synced_at is not None:
                conn.execute(
                    "UPDATE playlists SET last_synced_at=?, updated_at=? WHERE id=?",
                    (synced_at, synced_at, playlist_id),
                )

    def get_stale_playlist_ids(self, older_than: int, limit: int) -> List[int]:
        sql = """
        SELECT id FROM playlists
        WHERE last_synced_at IS NULL OR last_synced_at < ?
        ORDER BY last_attempted_at IS NOT NULL, last_attempted_at, last_synced_at IS NOT NULL, last_synced_at, id
        LIMIT ?
        """
        return [row[0] for row in self._fetchall(sql, (older_than, limit))]

    def mark_sync_attempt(self, playlist_id: int, attempted_at: int) -> None:
        self._write("UPDATE playlists SET last_attempted_at=? WHERE id=?", (attempted_at, playlist_id))

    def delete_playlist(self, playlist_id: int) -> bool:
        with self.transaction() as conn:
            cur = conn.execute("DELETE FROM playlists WHERE id=?", (playlist_id,))
            if cur.rowcount == 0:
                return False
            conn.execute("DELETE FROM playlist_tracks WHERE playlist_id=?", (playlist_id,))
            conn.execute("DELETE FROM playlist_links WHERE playlist_id=?", (playlist_id,))
        return True

    # --- Playlist links ---

    def get_playlist_links(self, playlist_id: int) -> List[PlaylistLinkRow]:
        sql = """
        SELECT id, playlist_id, user_id, service, service_playlist_id, is_source, last_synced_at, created_at
        FROM playlist_links
        WHERE playlist_id = ?
        ORDER BY id
        """
        return [PlaylistLinkRow.from_row(row) for row in self._fetchall(sql, (playlist_id,))]

    def create_playlist_link(
        self,
        playlist_id: int,
        user_id: int,
        service: str,
        service_playlist_id: str,
        is_source: bool,
        now: int,
        last_synced_at: int | None = None,
    ) -> int:
        cur = self._write(
            "INSERT INTO playlist_links(playlist_id, user_id, service, service_playlist_id, is_source, last_synced_at, created_at) VALUES(?,?,?,?,?,?,?)",
            (playlist_id, user_id, service, service_playlist_id, 1 if is_source else 0, last_synced_at, now),
        )
        return int(cur.lastrowid)

    def update_link_sync_timestamp(self, link_id: int, synced_at: int) -> None:
        self._write("UPDATE playlist_links SET last_synced_at=? WHERE id=?", (synced_at, link_id))

    def user_has_playlist_link(self, playlist_id: int, user_id: int) -> bool:
        row = self._fetchone(
            "SELECT 1 FROM playlist_links WHERE playlist_id=? AND user_id=? LIMIT 1", (playlist_id, user_id)
        )
        return row is not None

    # --- Credentials ---

    def get_credential(self, user_id: int, service: str) -> Optional[CredentialRow]:
        row = self._fetchone(
            "SELECT user_id, service, access_token, refresh_token, expires_at, service_user_id, updated_at FROM credentials WHERE user_id=? AND service=?",
            (user_id, service),
        )
        return CredentialRow.from_row(row) if row else None

    def save_credential(
        self,
        user_id: int,
        service: str,
        access_token: str,
        refresh_token: str | None,
        expires_at: int | None,
        now: int,
        service_user_id: str | None = None,
    ) -> None:
        self._write(
            "INSERT INTO credentials(user_id, service, access_token, refresh_token, expires_at, service_user_id, created_at, updated_at) VALUES(?,?,?,?,?,?,?,?) "
            "ON CONFLICT(user_id, service) DO UPDATE SET access_token=excluded.access_token, refresh_token=excluded.refresh_token, "
            "expires_at=excluded.expires_at, service_user_id=COALESCE(excluded.service_user_id, credentials.service_user_id), updated_at=excluded.updated_at",
            (user_id, service, access_token, refresh_token, expires_at, service_user_id, now, now),
        )

    def delete_credential(self, user_id: int, service: str) -> bool:
        cur = self._write("DELETE FROM credentials WHERE user_id=? AND service=?", (user_id, service))
        return cur.rowcount > 0

    # --- Meta ---

    def set_meta(self, key: str, value: str):
        self._write("INSERT INTO meta(key,value) VALUES(?,?) ON CONFLICT(key) DO UPDATE SET value=excluded.value", (key, value))

    def get_meta(self, key: str) -> Optional[str]:
        row = self._fetchone("SELECT value FROM meta WHERE key=?", (key,))
        return row[0] if row else None

    def close(self):
        if not self._closed:
            try:
                with self._lock:
                    self.conn.commit()
                    self.conn.close()
            finally:
                self._closed = True


__all__ = ["Database", "SCHEMA_VERSION"]
