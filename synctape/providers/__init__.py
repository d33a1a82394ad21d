"""Provider abstraction public API.

Spotify is implemented; Apple Music is declared and fails with
UnimplementedError. Clients and refreshers are built once at startup with
build_service_clients()/build_token_refreshers() and injected into the
engine as plain dicts keyed by service name.
"""

from __future__ import annotations
import logging
from typing import Any, Dict

from .base import (
    TrackMetadata,
    PlaylistSnapshot,
    TokenGrant,
    ProviderCapabilities,
    StreamingServiceClient,
    TokenRefresher,
    Provider,
)
from .spotify import SpotifyProvider
from .apple_music import AppleMusicProvider

logger = logging.getLogger(__name__)


def available_providers() -> Dict[str, Provider]:
    """All known provider factories keyed by service name."""
    providers = [SpotifyProvider(), AppleMusicProvider()]
    return {p.name: p for p in providers}


def _provider_section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    return (cfg.get('providers') or {}).get(name) or {}


def build_service_clients(cfg: Dict[str, Any]) -> Dict[str, StreamingServiceClient]:
    """Create one API client per known service from the loaded config dict."""
    http_config = cfg.get('http') or {}
    clients = {
        name: provider.create_client(_provider_section(cfg, name), http_config)
        for name, provider in available_providers().items()
    }
    logger.debug(f"Built service clients: {', '.join(sorted(clients))}")
    return clients


def build_token_refreshers(cfg: Dict[str, Any]) -> Dict[str, TokenRefresher]:
    """Create token refreshers for services whose credentials are configured.

    Services without app credentials (or without a refresh grant) are left
    out; their stored tokens are used as-is until they expire.
    """
    http_config = cfg.get('http') or {}
    refreshers: Dict[str, TokenRefresher] = {}
    for name, provider in available_providers().items():
        section = _provider_section(cfg, name)
        try:
            provider.validate_config(section)
        except ValueError as e:
            logger.debug(f"No token refresher for {name}: {e}")
            continue
        refresher = provider.create_refresher(section, http_config)
        if refresher is not None:
            refreshers[name] = refresher
    return refreshers


__all__ = [
    "TrackMetadata",
    "PlaylistSnapshot",
    "TokenGrant",
    "ProviderCapabilities",
    "StreamingServiceClient",
    "TokenRefresher",
    "Provider",
    "available_providers",
    "build_service_clients",
    "build_token_refreshers",
]
