"""Canonical track identity across streaming services."""

from .resolver import TrackIdentityResolver

__all__ = ["TrackIdentityResolver"]
