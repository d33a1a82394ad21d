"""Apple Music provider (client declared, no token refresh grant)."""

from __future__ import annotations
from typing import Dict, Any
from ..base import Provider, StreamingServiceClient, TokenRefresher
from .client import AppleMusicClient


class AppleMusicProvider(Provider):

    @property
    def name(self) -> str:
        return "apple_music"

    def create_client(self, config: Dict[str, Any], http_config: Dict[str, Any] | None = None) -> StreamingServiceClient:
        return AppleMusicClient(
            developer_token=config.get('developer_token'),
            timeout=(http_config or {}).get('timeout_seconds', 30),
        )

    def create_refresher(self, config: Dict[str, Any], http_config: Dict[str, Any] | None = None) -> TokenRefresher | None:
        # Music user tokens are long-lived and cannot be refreshed
        return None

    def validate_config(self, config: Dict[str, Any]) -> None:
        if not config.get('developer_token'):
            raise ValueError("Apple Music config missing required field: developer_token")

    def get_default_config(self) -> Dict[str, Any]:
        return {'developer_token': None}


__all__ = ["AppleMusicProvider"]
