"""Read-through access to cached content for the app's screens."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from .api.content_api import ContentAPI
from .api.update_api import UpdateAPI
from .downloader.media_cache import MediaCache
from .models import CachedResourceEnvelope
from .registry import ResourceRegistry
from .sync.batch_queue import BatchPriority, BatchQueue
from .sync.engine import ProgressCallback, SyncEngine
from .sync.state import CacheState
from .utils.cache_store import CacheStore
from .utils.file_utils import asset_file_path
from .utils.http_client import HttpClient
from .utils.version_gate import VersionGate


def _report(on_progress: Optional[ProgressCallback], message: str) -> None:
    if on_progress is not None:
        on_progress(message)


class ContentCache:
    """Composition root and the only surface screens talk to.

    Reads (``get``, ``get_media_path``, ``is_loading``) are served from
    memory and never touch the disk or network. ``fetch``,
    ``resync_all`` and ``check_for_updates`` do network I/O and never raise;
    absent data is reported as ``None``. The ``batched_*`` variants and
    ``background_update_check`` go through the batch queue, which retries a
    failed run before giving up.
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        store: CacheStore,
        engine: SyncEngine,
        version_gate: VersionGate,
        http_client: Optional[HttpClient] = None,
        batch_queue: Optional[BatchQueue] = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.engine = engine
        self.version_gate = version_gate
        self.state = engine.state
        self.batch_queue = batch_queue or BatchQueue()
        self._http_client = http_client

    @classmethod
    def create(
        cls,
        base_url: str,
        access_token: str,
        cache_dir: str,
        app_version: str,
        cdn_url: Optional[str] = None,
        timeout: float = 30,
        media_workers: int = 4,
        concurrent_resources: int = 1,
        registry: Optional[ResourceRegistry] = None,
    ) -> "ContentCache":
        registry = registry or ResourceRegistry()
        http_client = HttpClient(base_url, access_token, cdn_url=cdn_url, timeout=timeout)
        store = CacheStore(cache_dir)
        version_gate = VersionGate(store, app_version)
        engine = SyncEngine(
            registry=registry,
            store=store,
            content_api=ContentAPI(http_client),
            media_cache=MediaCache(http_client, cache_dir, workers=media_workers),
            state=CacheState(),
            version_gate=version_gate,
            update_api=UpdateAPI(http_client),
            concurrent_resources=concurrent_resources,
        )
        return cls(registry, store, engine, version_gate, http_client=http_client)

    def startup(self) -> bool:
        """Applies the version gate, then loads whatever survived from disk.

        Returns False when the cache was wiped for a new app version.
        """

        kept = self.version_gate.ensure_valid()
        if not kept:
            self.state.clear()
        loaded = self.engine.load_all_cached()
        logging.info("Loaded %s cached resources", loaded)
        return kept

    def get(self, name: str) -> Optional[Any]:
        envelope = self.state.get(name)
        return envelope.data if envelope else None

    def get_envelope(self, name: str) -> Optional[CachedResourceEnvelope]:
        return self.state.get(name)

    def get_media_path(self, name: str, asset_id: str) -> Optional[str]:
        """Local file for ``asset_id``; falls back to where it would be downloaded."""

        envelope = self.state.get(name)
        if envelope is not None:
            cached_path = envelope.media_paths.get(asset_id)
            if cached_path:
                return cached_path
        if not asset_id or name not in self.registry:
            return None
        return asset_file_path(self.store.cache_dir, name, asset_id)

    def is_loading(self, name: str) -> bool:
        return self.state.is_loading(name)

    async def fetch(self, name: str) -> Optional[Any]:
        descriptor = self.registry.get(name)
        if descriptor is None:
            logging.debug("Ignoring fetch for unknown resource %s", name)
            return None
        return await self.engine.fetch(descriptor)

    async def resync_all(self, on_progress: Optional[ProgressCallback] = None) -> None:
        try:
            await self.engine.sync_all(on_progress)
        except Exception as exc:
            logging.error("Resync pass failed: %s", exc)

    async def check_for_updates(self, on_progress: Optional[ProgressCallback] = None) -> bool:
        try:
            return await self.engine.check_for_updates(on_progress)
        except Exception as exc:
            logging.error("Update check failed: %s", exc)
            return False

    async def background_update_check(self) -> bool:
        """Polling entry point: one queued, high-priority update check."""

        return await self._run_batched("global-update-check", self.engine.check_for_updates, "update check", None)

    async def batched_check_for_updates(self, on_progress: Optional[ProgressCallback] = None) -> bool:
        async def job() -> bool:
            _report(on_progress, "Starting batched update check...")
            return await self.engine.check_for_updates(on_progress)

        return await self._run_batched("manual-update-check", job, "update check", on_progress)

    async def batched_resync_all(self, on_progress: Optional[ProgressCallback] = None) -> bool:
        async def job() -> bool:
            _report(on_progress, "Starting batched full sync...")
            await self.engine.sync_all(on_progress)
            return True

        return await self._run_batched("manual-full-sync", job, "full sync", on_progress)

    async def _run_batched(
        self,
        key: str,
        job: Callable[[], Awaitable[bool]],
        label: str,
        on_progress: Optional[ProgressCallback],
    ) -> bool:
        try:
            result = await self.batch_queue.submit(key, job, BatchPriority.HIGH)
        except Exception as exc:
            logging.error("Batched %s failed: %s", label, exc)
            _report(on_progress, f"Batched {label} failed")
            return False
        _report(on_progress, f"Batched {label} completed")
        return result is True

    async def close(self) -> None:
        self.batch_queue.clear()
        if self._http_client is not None:
            await self._http_client.close()

    async def __aenter__(self) -> "ContentCache":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.close()
