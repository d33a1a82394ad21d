"""Typed configuration dataclasses for synctape.

Provides strongly-typed configuration objects that can be used throughout
the application for better type safety and IDE support.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Dict, Any


@dataclass
class SpotifyConfig:
    """Spotify application credentials (used for the refresh_token grant)."""
    client_id: str | None = None
    client_secret: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AppleMusicConfig:
    """Apple Music developer token."""
    developer_token: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProvidersConfig:
    """Configuration for all providers."""
    spotify: SpotifyConfig = field(default_factory=SpotifyConfig)
    apple_music: AppleMusicConfig = field(default_factory=AppleMusicConfig)

    def to_dict(self) -> Dict[str, Any]:
        return {"spotify": self.spotify.to_dict(), "apple_music": self.apple_music.to_dict()}


@dataclass
class SyncConfig:
    """Reconciliation engine and batch trigger settings."""
    skew_seconds: int = 60  # refresh tokens this long before expiry
    max_workers: int = 4
    playlist_budget_seconds: float = 120
    staleness_hours: float = 24
    batch_size: int = 100

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class HttpConfig:
    """Outbound HTTP settings shared by all provider clients."""
    timeout_seconds: float = 30
    max_attempts: int = 5
    max_retry_after_seconds: float = 60

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DatabaseConfig:
    """Database configuration."""
    path: str = "data/db/synctape.db"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AppConfig:
    """Root application configuration with all subsections."""
    log_level: str = "INFO"
    providers: ProvidersConfig = field(default_factory=ProvidersConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to nested dictionary (the shape load_config() returns)."""
        return {
            "log_level": self.log_level,
            "providers": self.providers.to_dict(),
            "sync": self.sync.to_dict(),
            "http": self.http.to_dict(),
            "database": self.database.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AppConfig:
        """Create typed config from dictionary.

        Args:
            data: Dictionary config (from load_config)

        Returns:
            Typed AppConfig instance
        """
        providers_data = data.get("providers", {})
        return cls(
            log_level=data.get("log_level", "INFO"),
            providers=ProvidersConfig(
                spotify=SpotifyConfig(**providers_data.get("spotify", {})),
                apple_music=AppleMusicConfig(**providers_data.get("apple_music", {})),
            ),
            sync=SyncConfig(**data.get("sync", {})),
            http=HttpConfig(**data.get("http", {})),
            database=DatabaseConfig(**data.get("database", {})),
        )
