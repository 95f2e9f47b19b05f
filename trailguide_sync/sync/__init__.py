"""Diffing, merging, and the sync engine that drives them."""

from .batch_queue import BatchConfig, BatchPriority, BatchQueue
from .diff import determine_sync_actions, latest_timestamp, merge_updates, parse_timestamp
from .engine import SyncEngine
from .poller import SyncPoller
from .state import CacheState

__all__ = [
    "BatchConfig",
    "BatchPriority",
    "BatchQueue",
    "CacheState",
    "SyncEngine",
    "SyncPoller",
    "determine_sync_actions",
    "latest_timestamp",
    "merge_updates",
    "parse_timestamp",
]
