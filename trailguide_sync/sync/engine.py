"""Incremental sync of registered resources into the local cache."""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from ..api.content_api import ContentAPI
from ..api.update_api import UpdateAPI
from ..downloader.media_cache import MediaCache
from ..models import CachedResourceEnvelope, LoadStatus
from ..registry import ResourceDescriptor, ResourceRegistry
from ..utils.cache_store import CacheStore
from ..utils.http_client import RemoteError
from ..utils.version_gate import VersionGate
from .diff import determine_sync_actions, is_newer, latest_timestamp, merge_updates, parse_timestamp
from .state import CacheState

ProgressCallback = Callable[[str], None]

LAST_SYNC_DOCUMENT = "last_sync"
RESYNC_SIGNAL = "resync"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _timestamp_text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _batches(descriptors: Sequence[ResourceDescriptor], size: int) -> Iterator[Sequence[ResourceDescriptor]]:
    size = max(1, size)
    for start in range(0, len(descriptors), size):
        yield descriptors[start : start + size]


class SyncEngine:
    """Chooses full fetch, incremental reconcile, or skip for each resource.

    Collections with a usable local copy are reconciled by diffing
    ``{id, date_updated}`` metadata and fetching only the changed ids.
    Singletons are re-fetched whole when their remote ``date_updated`` is
    newer than the cached one. Each resource is written back on its own;
    a failure leaves the previous file in place and falls back to it.
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        store: CacheStore,
        content_api: ContentAPI,
        media_cache: MediaCache,
        state: CacheState,
        version_gate: Optional[VersionGate] = None,
        update_api: Optional[UpdateAPI] = None,
        concurrent_resources: int = 1,
    ) -> None:
        self.registry = registry
        self.store = store
        self.content_api = content_api
        self.media_cache = media_cache
        self.state = state
        self.version_gate = version_gate
        self.update_api = update_api
        self.concurrent_resources = concurrent_resources
        self._in_flight: Dict[str, "asyncio.Future[Any]"] = {}

    # --- Policy A: full fetch -------------------------------------------------

    async def full_fetch(self, descriptor: ResourceDescriptor) -> CachedResourceEnvelope:
        """Fetches, caches media for, and persists the whole resource. Raises on failure."""

        data = await self.content_api.fetch_full(descriptor.endpoint)
        if data is None:
            raise RemoteError(f"No data received from API for {descriptor.endpoint}")
        if not isinstance(data, (dict, list)):
            raise RemoteError(f"Unexpected payload type {type(data).__name__} for {descriptor.endpoint}")

        media_paths = await self.media_cache.process_and_cache_images(
            descriptor.name,
            data,
            self._reusable_paths(descriptor),
            descriptor.media_schema,
        )
        if isinstance(data, list):
            timestamp = latest_timestamp(item.get("date_updated") for item in data if isinstance(item, dict))
        else:
            timestamp = _timestamp_text(data.get("date_updated"))

        envelope = CachedResourceEnvelope(data=data, media_paths=media_paths, last_sync_timestamp=timestamp)
        self.store.save(descriptor.cache_key, envelope)
        self.state.put(descriptor.name, envelope)
        return envelope

    async def fetch(self, descriptor: ResourceDescriptor) -> Optional[Any]:
        """Full fetch with fallback to disk. Concurrent calls share one request.

        A caller that is cancelled stops waiting but leaves the shared request
        running for the others.
        """

        task = self._in_flight.get(descriptor.name)
        if task is None:
            task = asyncio.ensure_future(self._fetch_with_fallback(descriptor))
            self._in_flight[descriptor.name] = task
            task.add_done_callback(lambda done, name=descriptor.name: self._forget_in_flight(name, done))
        return await asyncio.shield(task)

    def _forget_in_flight(self, name: str, task: "asyncio.Future[Any]") -> None:
        if self._in_flight.get(name) is task:
            del self._in_flight[name]

    async def _fetch_with_fallback(self, descriptor: ResourceDescriptor) -> Optional[Any]:
        with self.state.loading(descriptor.name):
            try:
                envelope = await self.full_fetch(descriptor)
                return envelope.data
            except Exception as exc:
                logging.warning("[%s] Fetch failed, trying cache: %s", descriptor.name, exc)
                cached = self._load_fallback(descriptor)
                return cached.data if cached else None

    # --- Policy B: incremental reconcile --------------------------------------

    async def reconcile_collection(
        self,
        descriptor: ResourceDescriptor,
        local: CachedResourceEnvelope,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bool:
        """Applies remote changes to a cached collection. Returns True if anything changed."""

        remote_items = await self.content_api.fetch_metadata(descriptor.endpoint)
        local_items: List[Any] = list(local.data) if isinstance(local.data, list) else []
        actions = determine_sync_actions(local_items, remote_items)

        if actions.is_empty:
            self._notify(on_progress, f"[{descriptor.name}] Cache is up to date.")
            self.state.put(descriptor.name, local)
            return False

        self._notify(
            on_progress,
            f"[{descriptor.name}] Syncing: {len(actions.items_to_fetch)} new/updated, "
            f"{len(actions.items_to_delete)} to delete.",
        )
        fetched_items = await self.content_api.fetch_by_ids(descriptor.endpoint, actions.items_to_fetch)
        merged = merge_updates(local_items, fetched_items, actions.items_to_delete)
        media_paths = await self.media_cache.process_and_cache_images(
            descriptor.name,
            fetched_items,
            local.media_paths,
            descriptor.media_schema,
        )
        envelope = CachedResourceEnvelope(
            data=merged,
            media_paths=media_paths,
            last_sync_timestamp=latest_timestamp(actions.remote_timestamps.values()),
        )
        self.store.save(descriptor.cache_key, envelope)
        self.state.put(descriptor.name, envelope)
        return True

    # --- Policy C: singleton reconcile ----------------------------------------

    async def reconcile_singleton(
        self,
        descriptor: ResourceDescriptor,
        local: Optional[CachedResourceEnvelope],
        on_progress: Optional[ProgressCallback] = None,
    ) -> bool:
        remote = await self.content_api.fetch_singleton_metadata(descriptor.endpoint)
        if local is not None and remote is not None:
            if not is_newer(remote.get("date_updated"), local.last_sync_timestamp):
                self._notify(on_progress, f"[{descriptor.name}] Cache is up to date.")
                self.state.put(descriptor.name, local)
                return False

        self._notify(on_progress, f"[{descriptor.name}] Stale cache. Fetching updates...")
        await self.full_fetch(descriptor)
        return True

    # --- Passes ---------------------------------------------------------------

    async def sync_resource(self, descriptor: ResourceDescriptor, on_progress: Optional[ProgressCallback] = None) -> bool:
        """Runs the right policy for one resource. Never raises."""

        with self.state.loading(descriptor.name):
            try:
                self._notify(on_progress, f"[{descriptor.name}] Checking for updates...")
                local = self.store.load(descriptor.cache_key)
                if not descriptor.is_collection:
                    return await self.reconcile_singleton(descriptor, local, on_progress)
                if local is None or not isinstance(local.data, list):
                    self._notify(on_progress, f"[{descriptor.name}] Stale cache. Fetching updates...")
                    await self.full_fetch(descriptor)
                    return True
                return await self.reconcile_collection(descriptor, local, on_progress)
            except Exception as exc:
                self._notify(
                    on_progress,
                    f"[{descriptor.name}] Error: {exc}. Loading from cache.",
                    level=logging.WARNING,
                )
                self._load_fallback(descriptor)
                return False

    async def sync_all(self, on_progress: Optional[ProgressCallback] = None) -> None:
        """One resync pass over every registered resource, in declaration order."""

        self.store.ensure_directory()
        descriptors = list(self.registry)
        for batch in _batches(descriptors, self.concurrent_resources):
            results = await asyncio.gather(
                *(self.sync_resource(descriptor, on_progress) for descriptor in batch),
                return_exceptions=True,
            )
            for descriptor, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logging.error("[%s] Sync task crashed: %s", descriptor.name, result)

        self.record_last_sync()
        if self.version_gate is not None:
            self.version_gate.write_marker()

    async def check_for_updates(self, on_progress: Optional[ProgressCallback] = None) -> bool:
        """Consults the global update record and resyncs when needed.

        Returns True when a resync pass ran.
        """

        action = await self._update_action(on_progress)
        if action == "current":
            if not self.state.names():
                self._notify(on_progress, "App is up to date. Loading cached data...")
                self.load_all_cached(on_progress)
            else:
                self._notify(on_progress, "App is up to date.")
            return False
        if action == "wipe":
            self.store.wipe()
            self.state.clear()
        await self.sync_all(on_progress)
        return True

    async def _update_action(self, on_progress: Optional[ProgressCallback]) -> str:
        if self.update_api is None:
            return "sync"
        try:
            self._notify(on_progress, "Checking for updates...")
            signal = await self.update_api.get_update_signal()
            if signal is None:
                self._notify(on_progress, "Failed to check for updates. Running full sync...")
                return "sync"
            if not signal.date_updated:
                self._notify(on_progress, "No update date from server. Running full sync...")
                return "sync"
            server_ts = parse_timestamp(signal.date_updated)
            if server_ts is None:
                self._notify(on_progress, "Invalid server date format. Running full sync...")
                return "sync"

            last_sync = self.last_sync_date()
            local_ts = parse_timestamp(last_sync) if last_sync else EPOCH
            if local_ts is None:
                self._notify(on_progress, "Invalid local sync date. Running full sync...")
                return "sync"

            if not self.store.integrity_check(self.registry.cache_keys()):
                self._notify(on_progress, "Cache integrity checks failed. Wiping cache and running full sync...")
                return "wipe"
            if signal.update_signal == RESYNC_SIGNAL and local_ts <= server_ts:
                self._notify(on_progress, "Resync signal received. Wiping cache and redownloading data...")
                return "wipe"

            self._notify(on_progress, f"Server last update: {server_ts.isoformat()}")
            self._notify(on_progress, f"Local last sync: {local_ts.isoformat()}")
            if local_ts >= server_ts:
                return "current"
            self._notify(on_progress, "Updates available. Running full sync...")
            return "sync"
        except Exception as exc:
            self._notify(on_progress, f"Error checking updates ({exc}). Running full sync...", level=logging.WARNING)
            return "sync"

    # --- Local state ----------------------------------------------------------

    def load_all_cached(self, on_progress: Optional[ProgressCallback] = None) -> int:
        """Populates memory from disk for every resource that has a usable file."""

        loaded = 0
        for descriptor in self.registry:
            result = self.store.load_result(descriptor.cache_key)
            if not result.ok:
                if result.status is LoadStatus.CORRUPT:
                    self._notify(on_progress, f"[{descriptor.name}] Cached file is unreadable.", level=logging.WARNING)
                continue
            self.state.put(descriptor.name, result.envelope)
            loaded += 1
            self._notify(on_progress, f"[{descriptor.name}] Loaded from cache.", level=logging.DEBUG)
        return loaded

    def record_last_sync(self) -> None:
        self.store.save_document(LAST_SYNC_DOCUMENT, {"timestamp": datetime.now(timezone.utc).isoformat()})

    def last_sync_date(self) -> Optional[str]:
        payload = self.store.load_document(LAST_SYNC_DOCUMENT)
        if not payload:
            return None
        return _timestamp_text(payload.get("timestamp"))

    def _load_fallback(self, descriptor: ResourceDescriptor) -> Optional[CachedResourceEnvelope]:
        cached = self.store.load(descriptor.cache_key)
        if cached is not None:
            self.state.put(descriptor.name, cached)
        return cached

    def _reusable_paths(self, descriptor: ResourceDescriptor) -> Dict[str, str]:
        current = self.state.get(descriptor.name) or self.store.load(descriptor.cache_key)
        if current is None:
            return {}
        return {asset_id: path for asset_id, path in current.media_paths.items() if os.path.isfile(path)}

    @staticmethod
    def _notify(on_progress: Optional[ProgressCallback], message: str, level: int = logging.INFO) -> None:
        logging.log(level, message)
        if on_progress is not None:
            on_progress(message)
