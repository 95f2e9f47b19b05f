"""Shared HTTP helpers for the content API and asset downloads."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any, Dict, Iterable, Mapping, Optional

import aiohttp

from .file_utils import temporary_sibling

CDN_EXTENSIONS = (".jpg", ".jpeg", ".png", ".JPG", ".JPEG")


class RemoteError(Exception):
    """Raised for transport failures, non-2xx responses, and bad JSON."""

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None, url: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body
        self.url = url


class AuthenticationError(RemoteError):
    """Raised when the backend rejects the bearer token."""


class HttpClient:
    """Authenticated GET access to the content backend.

    The aiohttp session is created lazily inside the running event loop and
    rebuilt if the loop changes between calls.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        cdn_url: Optional[str] = None,
        timeout: float = 30,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.cdn_url = cdn_url.rstrip("/") if cdn_url else None
        self.access_token = access_token
        self.timeout = timeout
        self._auth_headers: Dict[str, str] = {
            "Authorization": f"Bearer {access_token}",
            "accept": "application/json",
        }

        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def build_url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def request_json(self, path: str, params: Optional[Mapping[str, str]] = None) -> Any:
        """GET ``path`` and return the decoded JSON body."""

        url = self.build_url(path)
        session = await self._get_session()
        try:
            async with session.get(url, params=params, headers=self._auth_headers) as resp:
                text = await resp.text()
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logging.error("HTTP GET to %s failed: %s", url, exc)
            raise RemoteError(f"Request to {url} failed: {exc}", body=str(exc), url=url) from exc

        if status in {401, 403}:
            logging.error("Authentication failed (status %s).", status)
            raise AuthenticationError(
                f"HTTP error! status: {status}, body: {text}", status=status, body=text, url=url
            )
        if not 200 <= status < 300:
            logging.error("API request to %s failed with status %s", url, status)
            raise RemoteError(f"HTTP error! status: {status}, body: {text}", status=status, body=text, url=url)

        try:
            return json.loads(text)
        except ValueError as exc:
            logging.error("API response from %s is not JSON: %s", url, exc)
            raise RemoteError(f"Invalid JSON from {url}: {exc}", status=status, body=text, url=url) from exc

    async def download_asset(self, asset_id: str, dest_path: str) -> bool:
        """Download an asset to ``dest_path``. Returns False when every source fails.

        A configured CDN is tried first with the usual image extensions, then the
        authenticated ``/assets/{id}`` endpoint.
        """

        for url, headers in self._asset_candidates(asset_id):
            try:
                if await self._download_to(url, dest_path, headers):
                    return True
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
                logging.debug("Asset download from %s failed: %s", url, exc)
        return False

    def _asset_candidates(self, asset_id: str) -> Iterable[tuple]:
        if self.cdn_url:
            for ext in CDN_EXTENSIONS:
                yield f"{self.cdn_url}/{asset_id}{ext}", {}
        yield self.build_url(f"assets/{asset_id}"), self._auth_headers

    async def _download_to(self, url: str, dest_path: str, headers: Mapping[str, str]) -> bool:
        session = await self._get_session()
        async with session.get(url, headers=headers) as resp:
            if resp.status != 200:
                logging.debug("Asset %s answered with status %s", url, resp.status)
                return False
            tmp_path = temporary_sibling(dest_path)
            try:
                with open(tmp_path, "wb") as file_obj:
                    async for chunk in resp.content.iter_chunked(1 << 14):
                        if chunk:
                            file_obj.write(chunk)
                os.replace(tmp_path, dest_path)
            finally:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
        return True

    async def _get_session(self) -> aiohttp.ClientSession:
        current_loop = asyncio.get_running_loop()
        if self._session:
            if (
                self._session.closed
                or not self._loop
                or self._loop.is_closed()
                or self._loop is not current_loop
            ):
                await self._shutdown_session()

        if self._session_lock is None or self._lock_loop is not current_loop:
            self._session_lock = asyncio.Lock()
            self._lock_loop = current_loop

        async with self._session_lock:
            if self._session and not self._session.closed:
                return self._session
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            connector = aiohttp.TCPConnector(limit=0)
            self._session = aiohttp.ClientSession(timeout=timeout, connector=connector)
            self._loop = current_loop
        return self._session

    async def _shutdown_session(self) -> None:
        if self._session:
            try:
                await self._session.close()
            except (aiohttp.ClientError, RuntimeError) as exc:
                logging.debug("Ignoring error while closing HTTP session: %s", exc)
        self._session = None
        self._loop = None

    async def close(self) -> None:
        await self._shutdown_session()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.close()
