from .interface import DatabaseInterface
from .sqlite_impl import Database
from .models import (
    SERVICE_COLUMNS,
    SUPPORTED_SERVICES,
    service_column,
    TrackRow,
    PlaylistRow,
    PlaylistTrackRow,
    PlaylistLinkRow,
    CredentialRow,
)

__all__ = [
    "DatabaseInterface",
    "Database",
    "SERVICE_COLUMNS",
    "SUPPORTED_SERVICES",
    "service_column",
    "TrackRow",
    "PlaylistRow",
    "PlaylistTrackRow",
    "PlaylistLinkRow",
    "CredentialRow",
]
