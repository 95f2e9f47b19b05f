"""API client for the backend's global update record."""

from __future__ import annotations

from typing import Optional

from ..models import UpdateSignal
from ..utils.http_client import HttpClient
from .content_api import ContentAPI

UPDATE_PATH = "/items/update/"


class UpdateAPI:
    """Reads the record the backend bumps whenever content changes."""

    def __init__(self, http_client: HttpClient) -> None:
        self._content = ContentAPI(http_client)

    async def get_update_signal(self) -> Optional[UpdateSignal]:
        data = await self._content.fetch_full(UPDATE_PATH)
        if not isinstance(data, dict):
            return None
        return UpdateSignal.model_validate(data)
