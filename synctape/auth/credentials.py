"""Credential store adapter.

Thin persistence boundary for per-(user, service) OAuth state. The token
refresh coordinator only talks to this adapter, never to the database
directly, so alternative stores (secret managers, KV stores) can be swapped
in by implementing the same three methods.
"""

from __future__ import annotations
import time
import logging
from typing import Callable

from ..db import DatabaseInterface, CredentialRow

logger = logging.getLogger(__name__)


class CredentialStore:
    """Read/write OAuth credentials keyed by (user_id, service)."""

    def __init__(self, db: DatabaseInterface, clock: Callable[[], float] = time.time):
        self.db = db
        self.clock = clock

    def get(self, user_id: int, service: str) -> CredentialRow | None:
        return self.db.get_credential(user_id, service)

    def save(
        self,
        user_id: int,
        service: str,
        access_token: str,
        refresh_token: str | None,
        expires_at: int | None,
        service_user_id: str | None = None,
    ) -> CredentialRow:
        """Create or update the credential and return the stored state."""
        now = int(self.clock())
        self.db.save_credential(
            user_id,
            service,
            access_token,
            refresh_token,
            expires_at,
            now,
            service_user_id=service_user_id,
        )
        logger.debug(f"Stored {service} credential for user {user_id} (expires_at={expires_at})")
        return CredentialRow(
            user_id=user_id,
            service=service,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            service_user_id=service_user_id,
            updated_at=now,
        )

    def revoke(self, user_id: int, service: str) -> bool:
        """Explicitly remove a credential. Returns False if none was stored."""
        removed = self.db.delete_credential(user_id, service)
        if removed:
            logger.info(f"Revoked {service} credential for user {user_id}")
        return removed


__all__ = ["CredentialStore"]
