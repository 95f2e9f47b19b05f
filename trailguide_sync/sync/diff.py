"""Timestamp diffing and merging of collection items."""

from __future__ import annotations

from collections.abc import Hashable
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..models import SyncActions


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parses an ISO 8601 ``date_updated`` value into an aware datetime.

    Anything that is not a parseable string (None, numbers, garbage) yields
    None. Naive values are read as UTC.
    """

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text[-1] in "Zz":
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def item_id(item: Any) -> Any:
    """Returns the item's ``id`` when it is usable as a key, else None."""

    if not isinstance(item, dict):
        return None
    value = item.get("id")
    if value is None or not isinstance(value, Hashable):
        return None
    return value


def _timestamp_map(items: Iterable[Any]) -> Dict[Any, Any]:
    mapping: Dict[Any, Any] = {}
    for item in items:
        key = item_id(item)
        if key is not None:
            mapping[key] = item.get("date_updated")
    return mapping


def is_newer(remote_value: Any, local_value: Any) -> bool:
    """Whether the remote copy of an existing item must be fetched.

    A remote timestamp that does not parse is never newer. A local timestamp
    that does not parse is older than any remote one that does. Equal
    timestamps are not newer.
    """

    remote_ts = parse_timestamp(remote_value)
    if remote_ts is None:
        return False
    local_ts = parse_timestamp(local_value)
    if local_ts is None:
        return True
    return remote_ts > local_ts


def determine_sync_actions(local_items: Iterable[Any], remote_items: Iterable[Any]) -> SyncActions:
    local_map = _timestamp_map(local_items)
    remote_map = _timestamp_map(remote_items)

    items_to_fetch = [
        remote_id
        for remote_id, remote_value in remote_map.items()
        if remote_id not in local_map or is_newer(remote_value, local_map[remote_id])
    ]
    items_to_delete = [local_id for local_id in local_map if local_id not in remote_map]
    return SyncActions(
        items_to_fetch=items_to_fetch,
        items_to_delete=items_to_delete,
        remote_timestamps=remote_map,
    )


def merge_updates(local_items: List[Any], fetched_items: Iterable[Any], delete_ids: Iterable[Any]) -> List[Any]:
    """Applies a fetched delta and a delete set to ``local_items``.

    Fetched items replace local items with the same id in place; fetched
    items with unknown ids are appended in fetch order. The remote copy
    always wins.
    """

    to_delete = set(delete_ids)
    fetched_map: Dict[Any, Any] = {}
    for item in fetched_items:
        key = item_id(item)
        if key is not None:
            fetched_map[key] = item

    merged: List[Any] = []
    local_ids = set()
    for item in local_items:
        key = item_id(item)
        if key is not None:
            local_ids.add(key)
            if key in to_delete:
                continue
        merged.append(fetched_map.get(key, item) if key is not None else item)

    merged.extend(
        item for key, item in fetched_map.items() if key not in local_ids and key not in to_delete
    )
    return merged


def latest_timestamp(values: Iterable[Any]) -> Optional[str]:
    """Returns the latest parseable timestamp as originally written."""

    latest_value: Optional[str] = None
    latest_ts: Optional[datetime] = None
    for value in values:
        parsed = parse_timestamp(value)
        if parsed is None:
            continue
        if latest_ts is None or parsed > latest_ts:
            latest_ts = parsed
            latest_value = value if isinstance(value, str) else parsed.isoformat()
    return latest_value
