"""Shared fakes for the sync engine and content cache tests."""

from __future__ import annotations

import asyncio
import copy
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pytest

from trailguide_sync.downloader.media_cache import MediaCache
from trailguide_sync.models import UpdateSignal
from trailguide_sync.registry import MediaSchema, ResourceDescriptor, ResourceRegistry
from trailguide_sync.sync.engine import SyncEngine
from trailguide_sync.sync.state import CacheState
from trailguide_sync.utils.cache_store import CacheStore
from trailguide_sync.utils.http_client import RemoteError
from trailguide_sync.utils.version_gate import VersionGate

HOME = ResourceDescriptor(
    name="home",
    endpoint="/items/home/",
    cache_key="home_data",
    media_schema=MediaSchema(fields=("background",)),
)
RULES = ResourceDescriptor(
    name="rules",
    endpoint="/rules/",
    cache_key="rules_data",
    media_schema=MediaSchema(fields=("background", "rules_image"), children={"rules": MediaSchema(fields=("icon",))}),
)
BIRDS = ResourceDescriptor(
    name="guide_bird",
    endpoint="/items/bird/",
    cache_key="guide_bird",
    is_collection=True,
    media_schema=MediaSchema(fields=("image",)),
)


class FakeContentAPI:
    """In-memory backend keyed by endpoint."""

    def __init__(self, remote: Optional[Dict[str, Any]] = None) -> None:
        self.remote: Dict[str, Any] = remote or {}
        self.errors: Dict[str, Exception] = {}
        self.calls: List[tuple] = []

    def _check(self, kind: str, endpoint: str, extra: Any = None) -> None:
        self.calls.append((kind, endpoint, extra))
        if endpoint in self.errors:
            raise self.errors[endpoint]

    def calls_of(self, kind: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == kind]

    async def fetch_full(self, endpoint: str) -> Any:
        self._check("full", endpoint)
        await asyncio.sleep(0)
        return copy.deepcopy(self.remote.get(endpoint))

    async def fetch_metadata(self, endpoint: str) -> List[Dict[str, Any]]:
        self._check("metadata", endpoint)
        return [{"id": item["id"], "date_updated": item.get("date_updated")} for item in self.remote.get(endpoint, [])]

    async def fetch_singleton_metadata(self, endpoint: str) -> Optional[Dict[str, Any]]:
        self._check("singleton_metadata", endpoint)
        data = self.remote.get(endpoint)
        return {"date_updated": data.get("date_updated")} if isinstance(data, dict) else None

    async def fetch_by_ids(self, endpoint: str, ids: Iterable[Any]) -> List[Dict[str, Any]]:
        id_list = list(ids)
        if not id_list:
            return []
        self._check("by_ids", endpoint, tuple(id_list))
        return [copy.deepcopy(item) for item in self.remote.get(endpoint, []) if item["id"] in id_list]


class FakeAssetClient:
    """Stands in for ``HttpClient.download_asset``."""

    def __init__(self, failing: Iterable[str] = ()) -> None:
        self.failing = set(failing)
        self.downloads: List[str] = []

    async def download_asset(self, asset_id: str, dest_path: str) -> bool:
        self.downloads.append(asset_id)
        if asset_id in self.failing:
            return False
        Path(dest_path).write_bytes(b"image-bytes")
        return True


class FakeUpdateAPI:
    def __init__(self, signal: Optional[UpdateSignal] = None, error: Optional[Exception] = None) -> None:
        self.signal = signal
        self.error = error

    async def get_update_signal(self) -> Optional[UpdateSignal]:
        if self.error:
            raise self.error
        return self.signal


class EngineHarness:
    def __init__(self, root: Path, descriptors=(HOME, RULES, BIRDS)) -> None:
        self.cache_dir = str(root / "cache")
        self.registry = ResourceRegistry(descriptors)
        self.store = CacheStore(self.cache_dir)
        self.api = FakeContentAPI()
        self.assets = FakeAssetClient()
        self.update_api = FakeUpdateAPI()
        self.state = CacheState()
        self.version_gate = VersionGate(self.store, "1.0.0-1")
        self.engine = SyncEngine(
            registry=self.registry,
            store=self.store,
            content_api=self.api,
            media_cache=MediaCache(self.assets, self.cache_dir),
            state=self.state,
            version_gate=self.version_gate,
            update_api=self.update_api,
        )

    def run(self, coro):
        return asyncio.run(coro)


@pytest.fixture
def harness(tmp_path: Path) -> EngineHarness:
    return EngineHarness(tmp_path)


def remote_error(message: str = "boom") -> RemoteError:
    return RemoteError(message, status=500, body=message)
