"""
Async client for the remote authority.

The remote authority is a PostgREST-style service (Supabase) exposing the
media catalog and the activation keys, plus plain HTTPS URLs for the media
files themselves. This module is the only place that speaks HTTP.

Operations:
    fetch_catalog()          GET  {url}/rest/v1/musicas?select=*
    fetch_key_record(key)    GET  {url}/rest/v1/chaves_ativacao?chave=eq.{key}&select=*
    touch_last_used(key_id)  PATCH {url}/rest/v1/chaves_ativacao?id=eq.{key_id}
    download(url, dest)      GET  {asset_url} (no credentials)

Failure Classification:
    Every operation either returns a typed value or raises one of:
        NotConfiguredError      URL or API key missing (REST calls only)
        NetworkFailureError     aiohttp transport error or timeout
        RemoteRejectedError     non-2xx status (carries .status)
        MalformedResponseError  body is not the expected JSON shape

Usage:
    async with RemoteGateway.from_config(config.remote) as gateway:
        catalog = await gateway.fetch_catalog()
        size = await gateway.download(catalog[0].asset_url, dest_path)
"""

import asyncio
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiohttp

from kiosk_cache.core.config import DEFAULT_REQUEST_TIMEOUT, RemoteConfig
from kiosk_cache.core.exceptions import (
    MalformedResponseError,
    NetworkFailureError,
    NotConfiguredError,
    RemoteRejectedError,
)
from kiosk_cache.core.file_manager import PARTIAL_SUFFIX
from kiosk_cache.core.logger import get_logger
from kiosk_cache.remote.models import CatalogEntry, RemoteKeyRecord

logger = get_logger(__name__)


CATALOG_PATH = "/rest/v1/musicas"
KEYS_PATH = "/rest/v1/chaves_ativacao"

DOWNLOAD_CHUNK_SIZE = 64 * 1024

# Bodies longer than this are truncated in error details
_MAX_ERROR_BODY = 500


class RemoteGateway:
    """
    aiohttp-based client for catalog, activation keys and media downloads.

    One ClientSession is created lazily on first use (inside the running
    event loop) and reused until close(). Use as an async context manager
    or call close() explicitly.

    Attributes:
        base_url: Service root URL without trailing slash ("" if unset).
        api_key: API key ("" if unset).
        request_timeout: Total timeout in seconds for REST calls; also
                         the connect and per-read timeout of downloads.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.request_timeout = request_timeout
        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_config(cls, remote: RemoteConfig) -> "RemoteGateway":
        return cls(remote.url, remote.api_key, remote.request_timeout)

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    async def __aenter__(self) -> "RemoteGateway":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session. Safe to call multiple times."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise NotConfiguredError(
                "Remote service not configured",
                details={"url_set": bool(self.base_url), "api_key_set": bool(self.api_key)}
            )

    def _auth_headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    # =========================================================================
    # REST plumbing
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str],
        json_body: dict[str, Any] | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> str:
        """
        Perform one REST call and return the response body text.

        Raises:
            NotConfiguredError, NetworkFailureError, RemoteRejectedError
        """
        self._require_configured()

        url = f"{self.base_url}{path}"
        headers = self._auth_headers()
        if extra_headers:
            headers.update(extra_headers)

        timeout = aiohttp.ClientTimeout(total=self.request_timeout)

        try:
            async with self._get_session().request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=timeout,
            ) as response:
                body = await response.text()
                status = response.status
        except asyncio.TimeoutError as e:
            raise NetworkFailureError(
                f"{method} {path} timed out after {self.request_timeout}s",
                details={"url": url}
            ) from e
        except aiohttp.ClientError as e:
            raise NetworkFailureError(
                f"{method} {path} failed: {e}",
                details={"url": url, "original_error": str(e)}
            ) from e

        if not 200 <= status < 300:
            raise RemoteRejectedError(
                f"{method} {path} failed with HTTP {status}",
                status=status,
                details={"url": url, "body": body[:_MAX_ERROR_BODY]}
            )

        logger.debug(f"{method} {path} -> HTTP {status} ({len(body)} bytes)")
        return body

    def _parse_json_array(self, body: str, what: str) -> list[Any]:
        try:
            payload = json.loads(body)
        except ValueError as e:
            raise MalformedResponseError(
                f"{what} response is not valid JSON: {e}",
                details={"body": body[:_MAX_ERROR_BODY]}
            ) from e

        if not isinstance(payload, list):
            raise MalformedResponseError(
                f"{what} response is not a JSON array",
                details={"body": body[:_MAX_ERROR_BODY]}
            )
        return payload

    # =========================================================================
    # Operations
    # =========================================================================

    async def fetch_catalog(self) -> list[CatalogEntry]:
        """
        Fetch the full remote catalog, in the order the server returns it.

        Raises:
            NotConfiguredError, NetworkFailureError, RemoteRejectedError,
            MalformedResponseError
        """
        body = await self._request("GET", CATALOG_PATH, params={"select": "*"})
        rows = self._parse_json_array(body, "Catalog")
        catalog = [CatalogEntry.from_api_response(row) for row in rows]
        logger.debug(f"Fetched catalog with {len(catalog)} entries")
        return catalog

    async def fetch_key_record(self, key: str) -> RemoteKeyRecord | None:
        """
        Fetch one activation key record.

        Returns:
            The first matching record, or None if the key does not exist.

        Raises:
            NotConfiguredError, NetworkFailureError, RemoteRejectedError,
            MalformedResponseError
        """
        body = await self._request(
            "GET", KEYS_PATH, params={"chave": f"eq.{key}", "select": "*"}
        )
        rows = self._parse_json_array(body, "Activation key")
        if not rows:
            return None
        return RemoteKeyRecord.from_api_response(rows[0])

    async def touch_last_used(self, key_id: str) -> None:
        """
        Set the key's last-used timestamp to now on the remote side.

        Callers treat this as fire-and-forget and ignore its failures.
        """
        now = datetime.now(timezone.utc).isoformat()
        await self._request(
            "PATCH",
            KEYS_PATH,
            params={"id": f"eq.{key_id}"},
            json_body={"ultimo_uso": now},
            extra_headers={"Prefer": "return=minimal"},
        )

    async def download(self, url: str, dest_path: Path) -> int:
        """
        Download one media file to dest_path.

        The body is streamed to '<dest_path>.part' and renamed into place
        only after the transfer completes, so dest_path either holds the
        whole file or does not exist.

        Returns:
            Number of bytes written.

        Raises:
            NetworkFailureError, RemoteRejectedError
        """
        partial_path = dest_path.with_name(dest_path.name + PARTIAL_SUFFIX)
        timeout = aiohttp.ClientTimeout(
            total=None,
            sock_connect=self.request_timeout,
            sock_read=self.request_timeout,
        )
        written = 0

        try:
            async with self._get_session().get(url, timeout=timeout) as response:
                if not 200 <= response.status < 300:
                    raise RemoteRejectedError(
                        f"Download failed with HTTP {response.status}",
                        status=response.status,
                        details={"url": url}
                    )
                with open(partial_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                        f.write(chunk)
                        written += len(chunk)
            os.replace(partial_path, dest_path)
        except asyncio.TimeoutError as e:
            raise NetworkFailureError(
                f"Download timed out: {url}",
                details={"url": url}
            ) from e
        except aiohttp.ClientError as e:
            raise NetworkFailureError(
                f"Download failed: {e}",
                details={"url": url, "original_error": str(e)}
            ) from e
        finally:
            if partial_path.exists():
                partial_path.unlink()

        logger.debug(f"Downloaded {written} bytes to {dest_path.name}")
        return written
