"""App-version marker that invalidates the cache between releases."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from ..models import VersionMarker
from .cache_store import CacheStore

VERSION_DOCUMENT = "app_version"


def current_version(version: Optional[str], build_number: Optional[str]) -> str:
    """Joins release version and build number, e.g. ``1.0.0-1``."""

    return f"{version or '1.0.0'}-{build_number or '1'}"


class VersionGate:
    """Compares the persisted marker with the running app version."""

    def __init__(self, store: CacheStore, app_version: str) -> None:
        self._store = store
        self.app_version = app_version

    def read_marker(self) -> Optional[str]:
        payload = self._store.load_document(VERSION_DOCUMENT)
        if payload is None:
            return None
        try:
            return VersionMarker.model_validate(payload).version or None
        except ValidationError as exc:
            logging.warning("Ignoring malformed version marker: %s", exc)
            return None

    def write_marker(self, version: Optional[str] = None) -> bool:
        marker = VersionMarker(
            version=version or self.app_version,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        return self._store.save_document(VERSION_DOCUMENT, marker.model_dump())

    def is_cache_version_valid(self) -> bool:
        cached = self.read_marker()
        if not cached:
            logging.info("No cached version found - cache invalid")
            return False
        valid = cached == self.app_version
        logging.info("Version check: current=%s, cached=%s, valid=%s", self.app_version, cached, valid)
        return valid

    def ensure_valid(self) -> bool:
        """Wipes the cache on mismatch. Returns True when the cache was kept."""

        if self.is_cache_version_valid():
            return True
        self._store.wipe()
        self.write_marker()
        return False
