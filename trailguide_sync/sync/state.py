"""In-memory mirror of the cached envelopes and per-resource loading flags."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from ..models import CachedResourceEnvelope


class CacheState:
    """Last materialized envelope per resource name.

    Owned by one ``ContentCache`` and shared with its sync engine; nothing
    here touches the disk or the network.
    """

    def __init__(self) -> None:
        self._envelopes: Dict[str, CachedResourceEnvelope] = {}
        self._loading: Dict[str, int] = {}

    def get(self, name: str) -> Optional[CachedResourceEnvelope]:
        return self._envelopes.get(name)

    def put(self, name: str, envelope: CachedResourceEnvelope) -> None:
        self._envelopes[name] = envelope

    def clear(self) -> None:
        self._envelopes.clear()

    def names(self):
        return list(self._envelopes)

    def is_loading(self, name: str) -> bool:
        return self._loading.get(name, 0) > 0

    @contextmanager
    def loading(self, name: str) -> Iterator[None]:
        """Marks ``name`` as loading until the block exits, however it exits."""

        self._loading[name] = self._loading.get(name, 0) + 1
        try:
            yield
        finally:
            remaining = self._loading.get(name, 1) - 1
            if remaining > 0:
                self._loading[name] = remaining
            else:
                self._loading.pop(name, None)
