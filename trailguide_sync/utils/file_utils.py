"""Filesystem helpers for the cache directory and its file names."""

from __future__ import annotations

import os
import re
import shutil
import tempfile
from pathlib import Path

INVALID_FILENAME_CHARS = re.compile(r"[\\/:*?\"<>|]")


def sanitize_filename(value: str, default: str = "file") -> str:
    """Removes characters that are invalid on most filesystems."""

    sanitized = INVALID_FILENAME_CHARS.sub("", value or "").strip()
    return sanitized or default


def ensure_directory(path: str) -> str:
    """Creates a directory (and its parents) if needed."""

    Path(path).mkdir(parents=True, exist_ok=True)
    return path


def cleanup_directory(path: str) -> None:
    """Deletes a directory tree if it exists."""

    if os.path.isdir(path):
        shutil.rmtree(path)


def data_file_path(cache_dir: str, cache_key: str) -> str:
    """Returns ``{cache_dir}/{cache_key}.json``."""

    return os.path.join(cache_dir, f"{sanitize_filename(cache_key, default='resource')}.json")


def asset_file_path(cache_dir: str, scope: str, asset_id: str) -> str:
    """Returns the local file for ``asset_id`` downloaded under ``scope``.

    Asset ids may arrive as paths (``folder/abc``); separators become ``_``
    so ids that share a last segment still get distinct files.
    """

    asset_name = (asset_id or "").strip("/").replace("/", "_")
    safe_scope = sanitize_filename(scope, default="scope")
    safe_name = sanitize_filename(asset_name, default="asset")
    return os.path.join(cache_dir, f"{safe_scope}_{safe_name}")


def temporary_sibling(path: str) -> str:
    """Creates an empty temp file next to ``path`` and returns its name."""

    directory = os.path.dirname(os.path.abspath(path)) or "."
    handle, tmp_path = tempfile.mkstemp(
        prefix=f".{os.path.basename(path)}.", suffix=".tmp", dir=directory
    )
    os.close(handle)
    return tmp_path


def atomic_write_text(path: str, content: str) -> None:
    """Writes ``content`` to ``path`` via a temp file and ``os.replace``."""

    tmp_path = temporary_sibling(path)
    try:
        with open(tmp_path, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
