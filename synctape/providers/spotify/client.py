"""Spotify API client.

Handles all HTTP requests to Spotify Web API endpoints used by the sync
core: playlist fetch (with pagination), playlist creation, ordered track
replacement and track search.

The access token is passed per call so one client instance serves every
user. Rate-limited requests (HTTP 429) are retried on the calling thread
after sleeping for the server's Retry-After interval.
"""

from __future__ import annotations
import time
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from ...errors import (
    AuthExpiredError,
    NotFoundError,
    ProviderError,
    RateLimitedError,
    UpstreamUnavailableError,
)
from ..base import PlaylistSnapshot, ProviderCapabilities, StreamingServiceClient, TrackMetadata

logger = logging.getLogger(__name__)
API_BASE = "https://api.spotify.com/v1"
SERVICE = "spotify"
MAX_TRACKS_PER_REQUEST = 100


def _parse_retry_after(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _parse_track(item: Dict[str, Any]) -> TrackMetadata | None:
    """Convert a playlist item to TrackMetadata (None for local/removed tracks)."""
    tr = (item or {}).get("track") or {}
    track_id = tr.get("id")
    if not track_id or tr.get("is_local"):
        return None
    album = tr.get("album") or {}
    images = album.get("images") or []
    return TrackMetadata(
        external_id=track_id,
        name=tr.get("name") or "",
        artist=", ".join(a.get("name", "") for a in tr.get("artists") or [] if a.get("name")),
        album=album.get("name"),
        isrc=(tr.get("external_ids") or {}).get("isrc"),
        duration_ms=tr.get("duration_ms"),
        image_url=images[0].get("url") if images else None,
    )


class SpotifyAPIClient(StreamingServiceClient):
    """Spotify Web API client.

    Args:
        session: requests.Session to send through (a new one when omitted)
        timeout: Per-request timeout in seconds
        max_attempts: Total attempts for a rate-limited request
        max_retry_after: Upper bound for a single Retry-After sleep
        sleep: Sleep function used between attempts (injectable for tests)
    """

    service = SERVICE
    capabilities = ProviderCapabilities(max_batch_size=MAX_TRACKS_PER_REQUEST)

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = 30,
        max_attempts: int = 5,
        max_retry_after: float = 60,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.max_retry_after = max_retry_after
        self._sleep = sleep

    # ---------------- HTTP plumbing -----------------

    def _wait_retry_after(self, retry_state) -> float:
        exc = retry_state.outcome.exception()
        ra = getattr(exc, "retry_after", None)
        if ra is None:
            ra = 1.0
        return min(ra, self.max_retry_after)

    def _retrying(self) -> Retrying:
        return Retrying(
            retry=retry_if_exception_type(RateLimitedError),
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait_retry_after,
            sleep=self._sleep,
            reraise=True,
        )

    def _request(
        self,
        method: str,
        path: str,
        access_token: str,
        params: Dict[str, Any] | None = None,
        json: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Execute a request with rate limit retries.

        Args:
            method: HTTP verb
            path: API path ('/me') or absolute URL (pagination 'next' links)
            access_token: OAuth bearer token

        Returns:
            JSON response as dict (empty when the body is empty)

        Raises:
            AuthExpiredError: 401
            NotFoundError: 404
            RateLimitedError: 429 after max_attempts
            UpstreamUnavailableError: Network failure, timeout or 5xx
            ProviderError: Any other non-2xx answer
        """
        url = path if path.startswith("http") else API_BASE + path
        return self._retrying()(self._send, method, url, access_token, params, json)

    def _send(self, method, url, access_token, params, json) -> Dict[str, Any]:
        try:
            r = self.session.request(
                method,
                url,
                headers={"Authorization": f"Bearer {access_token}"},
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamUnavailableError(f"Spotify {method} {url} failed: {e}", service=SERVICE) from e

        status = r.status_code
        if status == 429:
            ra = _parse_retry_after(r.headers.get("Retry-After"))
            logger.warning(f"Spotify rate limited {method} {url} (Retry-After={ra})")
            raise RateLimitedError(f"Spotify rate limited {method} {url}", service=SERVICE, retry_after=ra)
        if status == 401:
            raise AuthExpiredError("Spotify rejected the access token", service=SERVICE, status_code=status)
        if status == 404:
            raise NotFoundError(f"Spotify resource not found: {url}")
        if status >= 500:
            raise UpstreamUnavailableError(f"Spotify {method} {url} answered {status}", service=SERVICE, status_code=status)
        if status >= 400:
            raise ProviderError(f"Spotify {method} {url} answered {status}: {r.text[:200]}", service=SERVICE, status_code=status)
        if not r.text:
            return {}
        try:
            return r.json()
        except ValueError:
            return {}

    # ---------------- Read -----------------

    def current_user_profile(self, access_token: str) -> Dict[str, Any]:
        return self._request("GET", "/me", access_token)

    def _playlist_items(self, first_page: Dict[str, Any], access_token: str) -> Iterator[Dict[str, Any]]:
        page = first_page
        while True:
            items = page.get("items") or []
            logger.debug(f"Playlist page fetched {len(items)} items")
            yield from items
            next_url = page.get("next")
            if not next_url:
                break
            page = self._request("GET", next_url, access_token)

    def fetch_playlist(self, playlist_id: str, access_token: str) -> PlaylistSnapshot:
        data = self._request("GET", f"/playlists/{playlist_id}", access_token)
        tracks: List[TrackMetadata] = []
        skipped = 0
        for item in self._playlist_items(data.get("tracks") or {}, access_token):
            meta = _parse_track(item)
            if meta is None:
                skipped += 1
                continue
            tracks.append(meta)
        if skipped:
            logger.debug(f"Playlist {playlist_id}: skipped {skipped} items without a Spotify track id")
        return PlaylistSnapshot(
            name=data.get("name") or "",
            description=data.get("description"),
            tracks=tracks,
            snapshot_id=data.get("snapshot_id"),
        )

    # ---------------- Write -----------------

    def create_playlist(self, name: str, description: str, access_token: str) -> str:
        user = self.current_user_profile(access_token)
        created = self._request(
            "POST",
            f"/users/{user['id']}/playlists",
            access_token,
            json={"name": name, "description": description or "", "public": False},
        )
        logger.info(f"Created Spotify playlist '{name}' ({created.get('id')})")
        return created["id"]

    def replace_playlist_tracks(self, playlist_id: str, track_ids: Sequence[str], access_token: str) -> None:
        """Replace all tracks in a playlist.

        Batches follow ``capabilities.max_batch_size`` (Spotify accepts 100
        URIs per call): the first batch replaces, the rest are appended with
        POST. An empty list clears the playlist with a single PUT.
        """
        uris = [f"spotify:track:{tid}" for tid in track_ids]
        path = f"/playlists/{playlist_id}/tracks"
        batch = self.capabilities.max_batch_size
        self._request("PUT", path, access_token, json={"uris": uris[:batch]})
        for i in range(batch, len(uris), batch):
            self._request("POST", path, access_token, json={"uris": uris[i : i + batch]})
        logger.debug(f"Replaced Spotify playlist {playlist_id} with {len(uris)} tracks")

    # ---------------- Search -----------------

    def search_track(self, track: TrackMetadata, access_token: str) -> Optional[str]:
        """Find the Spotify id for a track: ISRC lookup, else exact title + artist."""
        if track.isrc:
            data = self._request("GET", "/search", access_token, params={"q": f"isrc:{track.isrc}", "type": "track", "limit": 1})
            items = (data.get("tracks") or {}).get("items") or []
            return items[0]["id"] if items else None

        query = f'track:"{track.name}" artist:"{track.artist}"'
        data = self._request("GET", "/search", access_token, params={"q": query, "type": "track", "limit": 10})
        want_name = track.name.strip().lower()
        want_artist = track.artist.strip().lower()
        for item in (data.get("tracks") or {}).get("items") or []:
            artists = ", ".join(a.get("name", "") for a in item.get("artists") or [])
            if (item.get("name") or "").strip().lower() == want_name and artists.strip().lower() == want_artist:
                return item.get("id")
        return None


__all__ = ["SpotifyAPIClient", "API_BASE", "MAX_TRACKS_PER_REQUEST"]
