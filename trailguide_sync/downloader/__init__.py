"""Asset download helpers."""

from .media_cache import MediaCache, collect_asset_ids, unresolved_assets

__all__ = ["MediaCache", "collect_asset_ids", "unresolved_assets"]
