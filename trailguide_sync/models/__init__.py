"""Data models for cached resources, version markers, and sync results."""

from .cache_models import CachedResourceEnvelope, CacheLoad, LoadStatus, VersionMarker
from .sync_models import SyncActions, UpdateSignal

__all__ = [
    "CachedResourceEnvelope",
    "CacheLoad",
    "LoadStatus",
    "VersionMarker",
    "SyncActions",
    "UpdateSignal",
]
