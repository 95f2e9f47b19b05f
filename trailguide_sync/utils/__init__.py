"""Utility helpers for HTTP, the cache directory, and version markers."""

from .cache_store import CacheStore
from .file_utils import asset_file_path, data_file_path, ensure_directory, sanitize_filename
from .http_client import AuthenticationError, HttpClient, RemoteError
from .version_gate import VersionGate, current_version

__all__ = [
    "AuthenticationError",
    "CacheStore",
    "HttpClient",
    "RemoteError",
    "VersionGate",
    "asset_file_path",
    "current_version",
    "data_file_path",
    "ensure_directory",
    "sanitize_filename",
]
