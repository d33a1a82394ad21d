"""Apple Music provider package."""

from .client import AppleMusicClient
from .provider import AppleMusicProvider

__all__ = ["AppleMusicClient", "AppleMusicProvider"]
