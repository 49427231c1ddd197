"""HTTP adapter for the signed-URL exchange backend."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import unquote, urlsplit

import httpx

from ..errors import ExchangeError, ExchangeKind
from ..models import UploadTarget

logger = logging.getLogger(__name__)

UPLOAD_TARGET_FAILED = "failed to obtain upload target"
VIEW_URL_FAILED = "failed to obtain view URL"


def derive_object_key(write_url: str, prefix: str = "uploads/") -> Optional[str]:
    """
    Recover the storage key from a write-capable signed URL.

    The key is the URL path from the first ``/<prefix>`` segment on, with
    the query string dropped and percent-escapes decoded. Returns None when
    the URL does not contain the prefix.
    """
    path = unquote(urlsplit(write_url).path)
    marker = "/" + prefix
    _, found, rest = path.partition(marker)
    if not found or not rest:
        return None
    return prefix + rest


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        message = body.get("error")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return default


class ExchangeClient:
    """
    HTTP client adapter for the signed-URL exchange.

    Implements IExchangeClient protocol. No retries: a failed exchange is
    reported to the caller as ExchangeError.
    """

    def __init__(
        self,
        endpoint: str,
        csrf_token: str = "",
        csrf_header: str = "x-csrf-token",
        timeout: float = 30.0,
        key_prefix: str = "uploads/",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._endpoint = endpoint
        self._headers = {csrf_header: csrf_token}
        self._timeout = timeout
        self._key_prefix = key_prefix
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("ExchangeClient not initialized. Use 'async with' context.")
        return self._client

    async def _send(self, kind: ExchangeKind, default: str, method: str, **kwargs) -> Dict[str, Any]:
        client = self._require_client()
        try:
            response = await client.request(method, self._endpoint, headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning(f"[exchange] {method} {self._endpoint} unreachable: {exc!r}")
            raise ExchangeError(default, kind) from exc

        if not response.is_success:
            message = _error_message(response, default)
            logger.warning(f"[exchange] {method} {self._endpoint} -> {response.status_code}: {message}")
            raise ExchangeError(message, kind, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise ExchangeError(default, kind, status_code=response.status_code) from exc
        if not isinstance(body, dict):
            raise ExchangeError(default, kind, status_code=response.status_code)
        return body

    async def request_upload_target(self, filename: str, content_type: str) -> UploadTarget:
        """
        Obtain a write-capable signed URL for ``filename``.

        The backend may return the storage key explicitly; otherwise it is
        derived from the write URL.
        """
        body = await self._send(
            ExchangeKind.UPLOAD_TARGET,
            UPLOAD_TARGET_FAILED,
            "POST",
            json={"filename": filename, "contentType": content_type},
        )
        write_url = body.get("uploadURL")
        if not isinstance(write_url, str) or not write_url:
            raise ExchangeError(UPLOAD_TARGET_FAILED, ExchangeKind.UPLOAD_TARGET)

        object_key = body.get("key")
        if not isinstance(object_key, str) or not object_key:
            object_key = derive_object_key(write_url, self._key_prefix)
        if not object_key:
            logger.warning(f"[exchange] No storage key in upload target for {filename}")
            raise ExchangeError("upload target did not identify a storage key", ExchangeKind.UPLOAD_TARGET)

        logger.debug(f"[exchange] Upload target for {filename}: key={object_key}")
        return UploadTarget(write_url=write_url, object_key=object_key)

    async def request_view_url(self, object_key: str) -> str:
        """Obtain a read-capable signed URL for a stored object."""
        body = await self._send(
            ExchangeKind.VIEW_URL,
            VIEW_URL_FAILED,
            "GET",
            params={"key": object_key},
        )
        url = body.get("url")
        if not isinstance(url, str) or not url:
            raise ExchangeError(VIEW_URL_FAILED, ExchangeKind.VIEW_URL)
        return url
