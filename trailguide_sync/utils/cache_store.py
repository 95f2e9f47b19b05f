"""JSON-per-resource persistent store backing the offline cache."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Iterable, Optional

from pydantic import ValidationError

from ..models import CachedResourceEnvelope, CacheLoad, LoadStatus
from .file_utils import atomic_write_text, cleanup_directory, data_file_path, ensure_directory


class CacheStore:
    """Owns the on-disk cache directory.

    Every resource lives in its own ``{cache_key}.json`` file so a corrupt
    file only affects that resource. Nothing here raises on I/O failure:
    writes are logged and dropped, reads of anything unusable come back as
    missing or corrupt.
    """

    def __init__(self, cache_dir: str) -> None:
        self.cache_dir = cache_dir

    def ensure_directory(self) -> None:
        ensure_directory(self.cache_dir)

    def path_for(self, cache_key: str) -> str:
        return data_file_path(self.cache_dir, cache_key)

    def save(self, cache_key: str, envelope: CachedResourceEnvelope) -> bool:
        """Writes ``envelope`` as the sole content of the resource file."""

        return self.save_document(cache_key, envelope.model_dump(mode="json"))

    def load_result(self, cache_key: str) -> CacheLoad:
        raw = self._read_json(self.path_for(cache_key))
        if raw is None:
            status = LoadStatus.MISSING if not os.path.exists(self.path_for(cache_key)) else LoadStatus.CORRUPT
            return CacheLoad(status=status)
        if not isinstance(raw, dict):
            logging.warning("Cache file for %s does not hold an object", cache_key)
            return CacheLoad(status=LoadStatus.CORRUPT)
        try:
            envelope = CachedResourceEnvelope.model_validate(raw)
        except ValidationError as exc:
            logging.warning("Cache file for %s failed validation: %s", cache_key, exc)
            return CacheLoad(status=LoadStatus.CORRUPT)
        return CacheLoad(status=LoadStatus.OK, envelope=envelope)

    def load(self, cache_key: str) -> Optional[CachedResourceEnvelope]:
        """Returns the cached envelope, or ``None`` if it is missing or unusable."""

        return self.load_result(cache_key).envelope

    def save_document(self, name: str, payload: Dict[str, Any]) -> bool:
        path = self.path_for(name)
        try:
            self.ensure_directory()
            atomic_write_text(path, json.dumps(payload, ensure_ascii=False))
            logging.debug("Saved cache document %s", path)
            return True
        except (OSError, TypeError, ValueError) as exc:
            logging.error("Unable to write cache document %s: %s", path, exc)
            return False

    def load_document(self, name: str) -> Optional[Dict[str, Any]]:
        raw = self._read_json(self.path_for(name))
        return raw if isinstance(raw, dict) else None

    def integrity_check(self, cache_keys: Iterable[str]) -> bool:
        """False when any of the given resource files exists but is corrupt."""

        corrupt = [key for key in cache_keys if self.load_result(key).status is LoadStatus.CORRUPT]
        if corrupt:
            logging.warning("Corrupt cache files detected: %s", ", ".join(corrupt))
            return False
        return True

    def wipe(self) -> bool:
        """Deletes the whole cache directory and recreates it empty."""

        logging.info("Wiping cache directory %s", self.cache_dir)
        try:
            cleanup_directory(self.cache_dir)
            self.ensure_directory()
        except OSError as exc:
            logging.error("Failed to wipe cache directory %s: %s", self.cache_dir, exc)
            return False
        return True

    def _read_json(self, path: str) -> Any:
        if not os.path.isfile(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as handle:
                return json.load(handle)
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
            logging.warning("Failed to read cache file %s: %s", path, exc)
            return None
