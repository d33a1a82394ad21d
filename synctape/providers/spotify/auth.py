"""Spotify token refresh (refresh_token grant against the accounts service)."""

from __future__ import annotations
import logging

import requests

from ...errors import ProviderError, UpstreamUnavailableError
from ..base import TokenGrant, TokenRefresher

logger = logging.getLogger(__name__)
TOKEN_URL = "https://accounts.spotify.com/api/token"


class SpotifyTokenRefresher(TokenRefresher):
    service = "spotify"

    def __init__(
        self,
        client_id: str,
        client_secret: str | None = None,
        session: requests.Session | None = None,
        timeout: float = 30,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.session = session or requests.Session()
        self.timeout = timeout

    def refresh(self, refresh_token: str) -> TokenGrant:
        data = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        kwargs = {}
        if self.client_secret:
            kwargs["auth"] = (self.client_id, self.client_secret)
        else:
            # PKCE apps authenticate with the client id in the body
            data["client_id"] = self.client_id
        try:
            resp = self.session.post(TOKEN_URL, data=data, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise UpstreamUnavailableError(f"Spotify token endpoint unreachable: {e}", service=self.service) from e
        if resp.status_code >= 500:
            raise UpstreamUnavailableError(
                f"Spotify token endpoint answered {resp.status_code}", service=self.service, status_code=resp.status_code
            )
        if resp.status_code >= 400:
            raise ProviderError(
                f"Spotify token refresh failed ({resp.status_code}): {resp.text[:200]}",
                service=self.service,
                status_code=resp.status_code,
            )
        try:
            body = resp.json()
            grant = TokenGrant(
                access_token=body["access_token"],
                expires_in=int(body.get("expires_in", 3600)),
                refresh_token=body.get("refresh_token"),
            )
        except (ValueError, TypeError, KeyError) as e:
            raise ProviderError(
                f"Malformed Spotify token response: {e!r}", service=self.service, status_code=resp.status_code
            ) from e
        logger.debug("Spotify token refresh succeeded")
        return grant


__all__ = ["SpotifyTokenRefresher", "TOKEN_URL"]
