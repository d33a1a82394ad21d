"""Token refresh coordinator.

Hands out a currently-valid access token for a stored credential,
refreshing and persisting rotated tokens when the stored one is about to
expire.

Policy:
  * Token still valid for more than ``skew_seconds`` -> returned as-is, no network
  * No refresh token stored -> stored token returned (possibly stale), never replaced
  * Refresh succeeds -> new access token, expiry and refresh token (or the
    previous one when the provider did not rotate it) persisted before returning
  * Refresh fails -> warning logged, last known access token returned; the
    downstream call then succeeds or fails with its own auth error

Refreshes are single-flight per (user, service): callers that waited on the
lock re-read the credential and reuse the token the winner persisted.
"""

from __future__ import annotations
import time
import logging
import threading
from typing import Callable, Dict, Mapping, Tuple

import requests

from ..db import CredentialRow
from ..errors import AuthMissingError, SyncTapeError
from ..providers.base import TokenRefresher
from .credentials import CredentialStore

logger = logging.getLogger(__name__)

DEFAULT_SKEW_SECONDS = 60


class TokenRefreshCoordinator:
    def __init__(
        self,
        store: CredentialStore,
        refreshers: Mapping[str, TokenRefresher],
        skew_seconds: int = DEFAULT_SKEW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.refreshers = dict(refreshers)
        self.skew_seconds = skew_seconds
        self.clock = clock
        self._locks: Dict[Tuple[int, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, user_id: int, service: str) -> threading.Lock:
        key = (user_id, service)
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def needs_refresh(self, credential: CredentialRow) -> bool:
        exp = credential.expires_at
        if not exp:
            return True
        return exp - self.clock() <= self.skew_seconds

    def access_token_for(self, user_id: int, service: str) -> str:
        """Load the credential for (user, service) and return a usable token.

        Raises:
            AuthMissingError: If the user has not connected the service
        """
        credential = self.store.get(user_id, service)
        if credential is None:
            raise AuthMissingError(user_id, service)
        return self.get_valid_access_token(credential)

    def get_valid_access_token(self, credential: CredentialRow) -> str:
        if not self.needs_refresh(credential):
            return credential.access_token
        if not credential.refresh_token:
            logger.debug(
                f"{credential.service} token for user {credential.user_id} near expiry and no refresh token stored; using it as-is"
            )
            return credential.access_token

        with self._lock_for(credential.user_id, credential.service):
            current = self.store.get(credential.user_id, credential.service) or credential
            if not self.needs_refresh(current):
                # Another caller refreshed while we waited
                return current.access_token
            if not current.refresh_token:
                return current.access_token
            return self._refresh(current)

    def _refresh(self, credential: CredentialRow) -> str:
        refresher = self.refreshers.get(credential.service)
        if refresher is None:
            logger.warning(
                f"No token refresher configured for {credential.service}; using last known access token for user {credential.user_id}"
            )
            return credential.access_token
        try:
            grant = refresher.refresh(credential.refresh_token)  # type: ignore[arg-type]
        except (SyncTapeError, requests.RequestException) as e:
            logger.warning(
                f"Token refresh failed for user {credential.user_id} on {credential.service}: {e}; using last known access token"
            )
            return credential.access_token

        expires_at = int(self.clock()) + int(grant.expires_in)
        self.store.save(
            credential.user_id,
            credential.service,
            grant.access_token,
            grant.refresh_token or credential.refresh_token,
            expires_at,
        )
        logger.info(f"Refreshed {credential.service} token for user {credential.user_id} (+{int(grant.expires_in)}s)")
        return grant.access_token


__all__ = ["TokenRefreshCoordinator", "DEFAULT_SKEW_SECONDS"]
