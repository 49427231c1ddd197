"""
Transfer Engine - Single Responsibility: PUT file bytes to a signed URL.

One direct write per file, streamed in chunks so progress can be reported.
No retries.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import AsyncIterator, Optional

import httpx

from ..errors import TransferError
from ..models import ProgressEvent, TrackedFile, TransferOutcome
from ..protocols import ProgressCallback

logger = logging.getLogger(__name__)


class CancelHandle:
    """
    User-facing abort switch for one in-flight upload.

    Bound to the task doing the work; ``cancel()`` marks the abort as
    requested before cancelling the task, so the work can tell a user
    abort apart from any other interruption.
    """

    def __init__(self, task: Optional[asyncio.Task] = None):
        self._task = task
        self._requested = False

    def bind(self, task: asyncio.Task) -> None:
        self._task = task

    @property
    def requested(self) -> bool:
        return self._requested

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> bool:
        """Abort the bound task. Returns False if there was nothing to abort."""
        if not self.active:
            return False
        self._requested = True
        self._task.cancel()
        return True


async def _notify(callback: ProgressCallback, event: ProgressEvent) -> None:
    result = callback(event)
    if inspect.isawaitable(result):
        await result


class TransferEngine:
    """
    Uploads tracked files to write-capable signed URLs.

    Implements ITransferEngine protocol. The anti-forgery header is never
    sent here: it is meant for the exchange backend, not for storage.
    """

    def __init__(
        self,
        timeout: float = 300.0,
        chunk_size: int = 64 * 1024,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._timeout = timeout
        self._chunk_size = chunk_size
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

    async def _body(
        self,
        tracked: TrackedFile,
        on_progress: Optional[ProgressCallback],
    ) -> AsyncIterator[bytes]:
        """Yield the file content; report bytes sent after the transport takes each chunk."""
        total = tracked.size
        sent = 0
        try:
            chunks = tracked.candidate.iter_chunks(self._chunk_size)
            for chunk in chunks:
                yield chunk
                sent += len(chunk)
                # Without a known total there is no fraction to report
                if on_progress is not None and total > 0:
                    await _notify(on_progress, ProgressEvent(tracked.file_id, min(sent, total), total))
        except OSError as e:
            raise TransferError(f"could not read {tracked.filename}") from e

    async def transfer(
        self,
        tracked: TrackedFile,
        write_url: str,
        *,
        on_progress: Optional[ProgressCallback] = None,
        cancel_handle: Optional[CancelHandle] = None,
    ) -> TransferOutcome:
        """
        PUT the full content of ``tracked`` to ``write_url``.

        Returns:
            TransferOutcome: SUCCESS on a 2xx response, CANCELLED when the
            abort came through ``cancel_handle``, FAILURE otherwise
        """
        if not self._client:
            raise RuntimeError("TransferEngine not initialized. Use 'async with' context.")

        headers = {
            "Content-Type": tracked.content_type,
            "Content-Length": str(tracked.size),
        }
        logger.debug(f"[transfer] PUT {tracked.filename} ({tracked.size} bytes)")

        try:
            response = await self._client.put(
                write_url,
                content=self._body(tracked, on_progress),
                headers=headers,
            )
        except asyncio.CancelledError:
            if cancel_handle is not None and cancel_handle.requested:
                logger.info(f"[transfer] Aborted by user: {tracked.filename}")
                return TransferOutcome.aborted()
            raise
        except TransferError as e:
            logger.warning(f"[transfer] {tracked.filename}: {e.reason}")
            return TransferOutcome.fail(e.reason)
        except httpx.HTTPError as e:
            logger.warning(f"[transfer] Network error for {tracked.filename}: {e!r}")
            return TransferOutcome.fail("upload failed: network error")

        if not response.is_success:
            logger.warning(f"[transfer] Storage rejected {tracked.filename}: HTTP {response.status_code}")
            return TransferOutcome.fail(f"upload rejected by storage (HTTP {response.status_code})")

        logger.debug(f"[transfer] Stored {tracked.filename}")
        return TransferOutcome.ok()
