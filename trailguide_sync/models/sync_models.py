"""Models exchanged between the remote client and the sync engine."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SyncActions(BaseModel):
    """Result of diffing local items against remote metadata."""

    items_to_fetch: List[Any] = Field(default_factory=list)
    items_to_delete: List[Any] = Field(default_factory=list)
    remote_timestamps: Dict[Any, Any] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.items_to_fetch and not self.items_to_delete


class UpdateSignal(BaseModel):
    """Global update record published by the backend at ``/items/update/``."""

    id: Optional[int] = None
    date_updated: Optional[str] = None
    update_signal: Optional[str] = None
