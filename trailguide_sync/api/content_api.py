"""API client for the content collections and singletons."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from ..utils.http_client import HttpClient, RemoteError

METADATA_FIELDS = "id,date_updated"
SINGLETON_METADATA_FIELDS = "date_updated"


def _payload_data(payload: Any) -> Any:
    if isinstance(payload, dict):
        return payload.get("data")
    return None


class ContentAPI:
    """Full, metadata-only, and by-id reads of one endpoint."""

    def __init__(self, http_client: HttpClient) -> None:
        self._client = http_client

    async def fetch_full(self, endpoint: str) -> Any:
        """Returns the ``data`` member of the response without shape checks."""

        payload = await self._client.request_json(endpoint)
        return _payload_data(payload)

    async def fetch_metadata(self, endpoint: str) -> List[Dict[str, Any]]:
        """Returns ``{id, date_updated}`` for every item of a collection."""

        payload = await self._client.request_json(endpoint, params={"fields": METADATA_FIELDS})
        data = _payload_data(payload)
        if not isinstance(data, list):
            raise RemoteError(f"Metadata for {endpoint} is not a list", body=repr(data)[:200])
        return [item for item in data if isinstance(item, dict)]

    async def fetch_singleton_metadata(self, endpoint: str) -> Optional[Dict[str, Any]]:
        payload = await self._client.request_json(endpoint, params={"fields": SINGLETON_METADATA_FIELDS})
        data = _payload_data(payload)
        return data if isinstance(data, dict) else None

    async def fetch_by_ids(self, endpoint: str, ids: Iterable[Any]) -> List[Dict[str, Any]]:
        """Bulk-fetches the given ids in one request. No request for an empty list."""

        id_list = [str(item_id) for item_id in ids]
        if not id_list:
            return []
        payload = await self._client.request_json(endpoint, params={"filter[id][_in]": ",".join(id_list)})
        data = _payload_data(payload)
        if not isinstance(data, list):
            raise RemoteError(f"By-id fetch for {endpoint} is not a list", body=repr(data)[:200])
        return [item for item in data if isinstance(item, dict)]
