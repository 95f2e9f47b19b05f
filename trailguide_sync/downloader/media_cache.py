"""Downloads and memoizes image assets referenced from resource data."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

from ..registry import IMAGE_FIELD_KEYS, MediaSchema
from ..utils.file_utils import asset_file_path, ensure_directory
from ..utils.http_client import HttpClient


def _as_items(items: Any) -> List[Any]:
    if isinstance(items, dict):
        return [items]
    if isinstance(items, list):
        return items
    return []


def _is_asset_id(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def _walk_generic(item: Any, found: List[str]) -> None:
    if not isinstance(item, dict):
        return
    for key in IMAGE_FIELD_KEYS:
        value = item.get(key)
        if _is_asset_id(value):
            found.append(value)
    for value in item.values():
        if isinstance(value, list):
            for sub_item in value:
                _walk_generic(sub_item, found)


def _walk_schema(item: Any, schema: MediaSchema, found: List[str]) -> None:
    if not isinstance(item, dict):
        return
    for key in schema.fields:
        value = item.get(key)
        if _is_asset_id(value):
            found.append(value)
    for key, child_schema in schema.children.items():
        for sub_item in _as_items(item.get(key)):
            _walk_schema(sub_item, child_schema, found)


def collect_asset_ids(items: Any, schema: Optional[MediaSchema] = None) -> List[str]:
    """Returns the distinct asset ids referenced by ``items`` in discovery order.

    With a schema only the declared fields and child lists are visited.
    Without one every nested list is walked and the well-known image field
    names are checked at each level.
    """

    found: List[str] = []
    for item in _as_items(items):
        if schema is None:
            _walk_generic(item, found)
        else:
            _walk_schema(item, schema, found)
    return list(dict.fromkeys(found))


class MediaCache:
    """Stores assets as ``{scope}_{asset_id}`` files in the cache directory."""

    def __init__(self, http_client: HttpClient, cache_dir: str, workers: int = 4) -> None:
        self._http_client = http_client
        self.cache_dir = cache_dir
        self.workers = max(1, workers)

    def path_for(self, scope: str, asset_id: str) -> str:
        return asset_file_path(self.cache_dir, scope, asset_id)

    async def process_and_cache_images(
        self,
        scope: str,
        items: Any,
        existing_paths: Optional[Mapping[str, str]] = None,
        schema: Optional[MediaSchema] = None,
    ) -> Dict[str, str]:
        """Downloads every asset in ``items`` not already in ``existing_paths``.

        Returns a new path table merged with ``existing_paths``. Failed
        downloads are left out so they can be retried on a later pass.
        """

        image_paths: Dict[str, str] = dict(existing_paths or {})
        pending = [asset_id for asset_id in collect_asset_ids(items, schema) if asset_id not in image_paths]
        if not pending:
            return image_paths

        logging.debug("[%s] Downloading %s assets", scope, len(pending))
        sem = asyncio.Semaphore(self.workers)
        results = await asyncio.gather(*(self._download_single(sem, scope, asset_id) for asset_id in pending))
        for asset_id, local_path in zip(pending, results):
            if local_path:
                image_paths[asset_id] = local_path

        missing = sum(1 for local_path in results if not local_path)
        if missing:
            logging.info("[%s] %s of %s assets could not be downloaded", scope, missing, len(pending))
        return image_paths

    async def _download_single(self, sem: asyncio.Semaphore, scope: str, asset_id: str) -> Optional[str]:
        local_path = self.path_for(scope, asset_id)
        try:
            async with sem:
                ensure_directory(self.cache_dir)
                if await self._http_client.download_asset(asset_id, local_path):
                    logging.debug("Cached asset %s at %s", asset_id, local_path)
                    return local_path
        except Exception as exc:
            logging.debug("Asset %s download failed: %s", asset_id, exc)
        return None


def unresolved_assets(items: Any, media_paths: Mapping[str, str], schema: Optional[MediaSchema] = None) -> List[str]:
    """Asset ids referenced by ``items`` that have no local file yet."""

    return [asset_id for asset_id in collect_asset_ids(items, schema) if asset_id not in media_paths]
