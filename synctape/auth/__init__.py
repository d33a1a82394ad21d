"""Credential persistence and OAuth token refresh."""

from .credentials import CredentialStore
from .token_refresh import TokenRefreshCoordinator, DEFAULT_SKEW_SECONDS

__all__ = ["CredentialStore", "TokenRefreshCoordinator", "DEFAULT_SKEW_SECONDS"]
