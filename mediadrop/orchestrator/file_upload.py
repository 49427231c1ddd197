"""Per-file upload workflow: upload target -> byte transfer -> view URL."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import ExchangeError
from ..models import FileState, TrackedFile
from ..protocols import IExchangeClient, ITransferEngine, ProgressCallback
from ..services.transfer import CancelHandle

logger = logging.getLogger(__name__)

UNRESOLVED_URL = "uploaded but could not resolve a viewable URL"
GENERIC_FAILURE = "upload failed"


@dataclass(frozen=True)
class FileOutcome:
    """Terminal outcome of one file's upload."""
    state: FileState
    url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def succeeded(cls, url: str):
        return cls(state=FileState.SUCCESS, url=url)

    @classmethod
    def failed(cls, error: str):
        return cls(state=FileState.ERROR, error=error)

    @classmethod
    def cancelled(cls):
        return cls(state=FileState.CANCELLED)


class FileUploadPipeline:
    """
    Runs the signed-URL exchange and transfer for a single file.

    Never raises for exchange or transfer failures: everything ends in a
    FileOutcome so one file cannot take its siblings down.
    """

    def __init__(self, exchange: IExchangeClient, engine: ITransferEngine):
        self._exchange = exchange
        self._engine = engine

    async def run(
        self,
        tracked: TrackedFile,
        cancel_handle: CancelHandle,
        on_progress: Optional[ProgressCallback] = None,
    ) -> FileOutcome:
        try:
            return await self._run(tracked, cancel_handle, on_progress)
        except asyncio.CancelledError:
            if cancel_handle.requested:
                logger.info(f"[upload] Cancelled: {tracked.filename}")
                return FileOutcome.cancelled()
            raise
        except Exception as exc:
            logger.error(f"[upload] Unexpected error for {tracked.filename}: {exc}", exc_info=True)
            return FileOutcome.failed(GENERIC_FAILURE)

    async def _run(
        self,
        tracked: TrackedFile,
        cancel_handle: CancelHandle,
        on_progress: Optional[ProgressCallback],
    ) -> FileOutcome:
        # Same filename/content-type pair for every exchange of this file
        try:
            target = await self._exchange.request_upload_target(tracked.filename, tracked.content_type)
        except ExchangeError as exc:
            logger.warning(f"[upload] No upload target for {tracked.filename}: {exc.message}")
            return FileOutcome.failed(exc.message)

        outcome = await self._engine.transfer(
            tracked,
            target.write_url,
            on_progress=on_progress,
            cancel_handle=cancel_handle,
        )
        if outcome.cancelled:
            return FileOutcome.cancelled()
        if not outcome.success:
            return FileOutcome.failed(outcome.reason or GENERIC_FAILURE)

        try:
            url = await self._exchange.request_view_url(target.object_key)
        except ExchangeError as exc:
            logger.warning(f"[upload] {tracked.filename} stored as {target.object_key} but view URL failed: {exc.message}")
            return FileOutcome.failed(UNRESOLVED_URL)

        logger.info(f"[upload] Done: {tracked.filename}")
        return FileOutcome.succeeded(url)
