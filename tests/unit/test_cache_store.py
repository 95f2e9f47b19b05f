import json
import os
from pathlib import Path
from unittest import mock

import pytest

from trailguide_sync.models import CachedResourceEnvelope, LoadStatus
from trailguide_sync.utils.cache_store import CacheStore


def _envelope() -> CachedResourceEnvelope:
    return CachedResourceEnvelope(
        data=[{"id": 1, "date_updated": "2023-01-01T00:00:00Z", "image": "abc"}],
        media_paths={"abc": "/tmp/guide_bird_abc"},
        last_sync_timestamp="2023-01-01T00:00:00Z",
    )


def test_save_then_load_round_trips(tmp_path: Path) -> None:
    store = CacheStore(str(tmp_path / "cache"))
    envelope = _envelope()

    assert store.save("guide_bird", envelope) is True
    assert store.load("guide_bird") == envelope

    singleton = CachedResourceEnvelope(data={"id": 1, "text": "hi"})
    store.save("home_data", singleton)
    assert store.load("home_data") == singleton


def test_save_creates_missing_directory(tmp_path: Path) -> None:
    cache_dir = tmp_path / "nested" / "cache"
    store = CacheStore(str(cache_dir))

    store.save("home_data", CachedResourceEnvelope(data={"id": 1}))

    assert (cache_dir / "home_data.json").is_file()


def test_missing_file_is_reported_as_missing(tmp_path: Path) -> None:
    store = CacheStore(str(tmp_path))

    result = store.load_result("nothing")

    assert result.status is LoadStatus.MISSING
    assert store.load("nothing") is None


@pytest.mark.parametrize(
    "content",
    [
        '{"data":{"id":1,"text":"Test con',
        "",
        "not json at all",
        "[1, 2, 3]",
        '"just a string"',
        '{"media_paths": {}}',
        '{"data": null}',
        '{"data": 42}',
        '{"data": {"id": 1}, "media_paths": "oops"}',
    ],
)
def test_corrupt_content_loads_as_none(tmp_path: Path, content: str) -> None:
    store = CacheStore(str(tmp_path))
    Path(store.path_for("home_data")).write_text(content, encoding="utf-8")

    assert store.load("home_data") is None
    assert store.load_result("home_data").status is LoadStatus.CORRUPT


def test_directory_in_place_of_file_loads_as_none(tmp_path: Path) -> None:
    store = CacheStore(str(tmp_path))
    os.makedirs(store.path_for("home_data"))

    assert store.load("home_data") is None


def test_write_failure_is_swallowed(tmp_path: Path) -> None:
    blocker = tmp_path / "cache"
    blocker.write_text("a file where the directory should be", encoding="utf-8")
    store = CacheStore(str(blocker))

    assert store.save("home_data", CachedResourceEnvelope(data={"id": 1})) is False


def test_failed_replace_keeps_previous_file(tmp_path: Path) -> None:
    store = CacheStore(str(tmp_path))
    store.save("home_data", CachedResourceEnvelope(data={"id": 1, "text": "old"}))

    with mock.patch("trailguide_sync.utils.file_utils.os.replace", side_effect=OSError("disk full")):
        assert store.save("home_data", CachedResourceEnvelope(data={"id": 1, "text": "new"})) is False

    assert store.load("home_data").data == {"id": 1, "text": "old"}
    assert [name for name in os.listdir(tmp_path) if name.endswith(".tmp")] == []


def test_wipe_is_idempotent_and_recreates_directory(tmp_path: Path) -> None:
    cache_dir = tmp_path / "cache"
    store = CacheStore(str(cache_dir))
    store.save("home_data", CachedResourceEnvelope(data={"id": 1}))
    (cache_dir / "home_asset").write_bytes(b"x")

    assert store.wipe() is True
    assert cache_dir.is_dir()
    assert list(cache_dir.iterdir()) == []

    store.cache_dir = str(tmp_path / "never-created")
    assert store.wipe() is True
    assert (tmp_path / "never-created").is_dir()


def test_documents_and_integrity_check(tmp_path: Path) -> None:
    store = CacheStore(str(tmp_path))
    store.save_document("last_sync", {"timestamp": "2024-01-01T00:00:00+00:00"})
    store.save("home_data", CachedResourceEnvelope(data={"id": 1}))

    assert store.load_document("last_sync") == {"timestamp": "2024-01-01T00:00:00+00:00"}
    assert store.integrity_check(["home_data", "about_data"]) is True

    Path(store.path_for("about_data")).write_text("{broken", encoding="utf-8")
    assert store.integrity_check(["home_data", "about_data"]) is False

    Path(store.path_for("list_doc")).write_text(json.dumps([1, 2]), encoding="utf-8")
    assert store.load_document("list_doc") is None
