"""Pydantic models for the persisted cache documents."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class CachedResourceEnvelope(BaseModel):
    """The persisted unit for one resource.

    ``data`` is a single item object for singleton resources and a list of
    item objects for collections. ``media_paths`` maps asset ids found in
    ``data`` to files that were downloaded successfully.
    """

    data: Union[Dict[str, Any], List[Any]]
    media_paths: Dict[str, str] = Field(default_factory=dict)
    last_sync_timestamp: Optional[str] = None


class VersionMarker(BaseModel):
    """Cache-epoch marker written next to the resource files."""

    version: str
    timestamp: Optional[str] = None


class LoadStatus(str, Enum):
    OK = "ok"
    MISSING = "missing"
    CORRUPT = "corrupt"


class CacheLoad(BaseModel):
    """Outcome of reading one resource file from disk."""

    status: LoadStatus
    envelope: Optional[CachedResourceEnvelope] = None

    @property
    def ok(self) -> bool:
        return self.status is LoadStatus.OK
