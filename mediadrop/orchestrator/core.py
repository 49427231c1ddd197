"""Core orchestrator - owns the batch and drives each file through its states."""
import asyncio
import functools
import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..config import UploadConfig
from ..errors import ValidationError
from ..models import (
    CandidateFile,
    FailureNotice,
    FileState,
    ProgressEvent,
    TrackedFile,
    UploadResult,
)
from ..protocols import IExchangeClient, IPreviewFactory, ITransferEngine
from ..services.api_client import ExchangeClient
from ..services.preview import PreviewService
from ..services.transfer import CancelHandle, TransferEngine
from ..services.validator import Validator
from ..utils.events import EventEmitter

from .file_upload import FileOutcome, FileUploadPipeline
from .models import BatchResult, Cohort

logger = logging.getLogger(__name__)


class BatchOrchestrator:
    """
    Orchestrates a batch of media uploads.

    Files enter through ``add_files`` (validated), wait as pending, and all
    pending files start together on ``start``. Every change to a file is a
    whole-record replacement in the batch map, keyed by file id, so a late
    progress event can never overwrite a terminal state.

    Usage:
        async with BatchOrchestrator(UploadConfig.from_env()) as batch:
            batch.on_file_changed(lambda f: print(f.filename, f.state, f.progress))
            await batch.add_files([CandidateFile.from_path(p) for p in paths])
            outcome = await batch.start()
            print(outcome.urls)
    """

    def __init__(
        self,
        config: Optional[UploadConfig] = None,
        exchange: Optional[IExchangeClient] = None,
        engine: Optional[ITransferEngine] = None,
        validator: Optional[Validator] = None,
        previews: Optional[IPreviewFactory] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            config: Upload configuration
            exchange: Signed-URL exchange client (created from config if omitted)
            engine: Transfer engine (created from config if omitted)
            validator: Validator (created from config if omitted)
            previews: Preview factory for image thumbnails
        """
        self._config = config or UploadConfig()
        self._exchange = exchange
        self._engine = engine
        if previews is None and self._config.generate_preview:
            previews = PreviewService(size=self._config.preview_size)
        self._validator = validator or Validator(self._config, previews)

        self._owned: List = []
        self._pipeline: Optional[FileUploadPipeline] = None
        self._files: Dict[str, TrackedFile] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._cohorts: Dict[str, Cohort] = {}
        self._events = EventEmitter()
        self._closed = False

    async def __aenter__(self):
        """Open the clients not injected by the caller."""
        if self._exchange is None:
            exchange = ExchangeClient(
                self._config.endpoint,
                csrf_token=self._config.csrf_token,
                csrf_header=self._config.csrf_header,
                timeout=self._config.request_timeout,
                key_prefix=self._config.key_prefix,
            )
            await exchange.__aenter__()
            self._owned.append(exchange)
            self._exchange = exchange

        if self._engine is None:
            engine = TransferEngine(
                timeout=self._config.transfer_timeout,
                chunk_size=self._config.chunk_size,
            )
            await engine.__aenter__()
            self._owned.append(engine)
            self._engine = engine

        return self

    async def __aexit__(self, *args):
        """Tear down: no upload outlives the orchestrator."""
        await self.close()

    # Event subscription methods
    def on_file_added(self, callback: Callable[[TrackedFile], None]):
        """Called when a file is accepted into the batch. Receives TrackedFile."""
        self._events.on("file_added", callback)

    def on_file_changed(self, callback: Callable[[TrackedFile], None]):
        """Called on every state or progress change. Receives the new TrackedFile."""
        self._events.on("file_changed", callback)

    def on_file_removed(self, callback: Callable[[str], None]):
        """Called when a file leaves the batch (removed or cancelled). Receives file_id."""
        self._events.on("file_removed", callback)

    def on_rejected(self, callback: Callable[[ValidationError], None]):
        """Called once per validation failure. Receives ValidationError."""
        self._events.on("rejected", callback)

    def on_batch_progress(self, callback: Callable[[float], None]):
        """Called when overall progress of the running batch changes. Receives a fraction."""
        self._events.on("batch_progress", callback)

    def on_result(self, callback: Callable[[UploadResult], None]):
        """Called when a batch finishes with at least one success. Receives UploadResult."""
        self._events.on("result", callback)

    def on_failure(self, callback: Callable[[FailureNotice], None]):
        """Called when a batch finishes with at least one error. Receives FailureNotice."""
        self._events.on("failure", callback)

    # Read-only projection
    @property
    def files(self) -> Tuple[TrackedFile, ...]:
        return tuple(self._files.values())

    def get(self, file_id: str) -> Optional[TrackedFile]:
        return self._files.get(file_id)

    @property
    def is_uploading(self) -> bool:
        return any(f.state == FileState.UPLOADING for f in self._files.values())

    # Intents
    async def add_files(self, candidates: Iterable[CandidateFile]) -> List[TrackedFile]:
        """Validate candidates; accepted ones join the batch as pending."""
        if self._closed:
            raise RuntimeError("BatchOrchestrator is closed")

        accepted = []
        for candidate in candidates:
            outcome = self._validator.validate(candidate)
            if not outcome.accepted:
                for error in outcome.errors:
                    await self._events.emit("rejected", error)
                continue

            tracked = outcome.tracked
            self._files[tracked.file_id] = tracked
            accepted.append(tracked)
            logger.info(f"[batch] Added {tracked.filename} ({tracked.kind.value}, {tracked.size} bytes)")
            await self._events.emit("file_added", tracked)
        return accepted

    async def start(self) -> BatchResult:
        """
        Start every pending file concurrently and wait for all of them.

        One file's failure never stops its siblings. Cancelled files are
        removed and do not hold up completion.
        """
        pipeline = self._require_pipeline()
        pending = [f for f in self._files.values() if f.state == FileState.PENDING]
        if not pending:
            return BatchResult(result=UploadResult())

        cohort = Cohort(
            file_ids=[f.file_id for f in pending],
            sizes={f.file_id: f.size for f in pending},
        )
        logger.info(f"[batch] Starting {len(pending)} upload(s)")

        started = []
        for tracked in pending:
            handle = CancelHandle()
            uploading = tracked.with_changes(state=FileState.UPLOADING, progress=0.0, cancel_handle=handle)
            self._files[tracked.file_id] = uploading
            self._cohorts[tracked.file_id] = cohort
            started.append(uploading)

        for uploading in started:
            await self._events.emit("file_changed", uploading)

        for uploading in started:
            # A listener may already have cancelled it
            if self._files.get(uploading.file_id) is not uploading:
                self._cohorts.pop(uploading.file_id, None)
                cohort.settle()
                continue
            task = asyncio.create_task(self._upload_file(pipeline, uploading, uploading.cancel_handle, cohort))
            uploading.cancel_handle.bind(task)
            self._tasks[uploading.file_id] = task
            # Fires even for a task cancelled before its first step
            task.add_done_callback(functools.partial(self._task_done, uploading.file_id, cohort))

        await cohort.done.wait()
        return await self._finish(cohort)

    async def cancel(self, file_id: str) -> bool:
        """
        Abort an uploading file and remove it from the batch.

        No-op (returns False) for files that are not uploading.
        """
        record = self._files.get(file_id)
        if record is None or record.state != FileState.UPLOADING:
            return False

        logger.info(f"[batch] Cancelling {record.filename}")
        if record.cancel_handle is not None:
            record.cancel_handle.cancel()
        await self._discard(file_id)

        task = self._tasks.get(file_id)
        if task is not None and task is not asyncio.current_task():
            await asyncio.wait([task])
        return True

    async def remove(self, file_id: str) -> bool:
        """Remove a file; an uploading file is cancelled first."""
        record = self._files.get(file_id)
        if record is None:
            return False
        if record.state == FileState.UPLOADING:
            return await self.cancel(file_id)
        await self._discard(file_id)
        return True

    async def reset(self) -> None:
        """Cancel in-flight uploads, release every preview and empty the batch."""
        uploading = [f for f in self._files.values() if f.state == FileState.UPLOADING]
        for record in uploading:
            if record.cancel_handle is not None:
                record.cancel_handle.cancel()

        current = asyncio.current_task()
        tasks = [t for t in self._tasks.values() if t is not current]
        if tasks:
            await asyncio.wait(tasks)

        for file_id in list(self._files):
            await self._discard(file_id)
        logger.debug("[batch] Reset")

    async def close(self) -> None:
        """Reset the batch and close the clients this orchestrator opened."""
        if self._closed:
            return
        try:
            await self.reset()
        finally:
            self._closed = True
            for client in reversed(self._owned):
                await client.aclose()
            self._owned.clear()

    # Internal methods
    def _require_pipeline(self) -> FileUploadPipeline:
        if self._closed:
            raise RuntimeError("BatchOrchestrator is closed")
        if self._pipeline is None:
            if self._exchange is None or self._engine is None:
                raise RuntimeError("BatchOrchestrator not initialized. Use 'async with' context.")
            self._pipeline = FileUploadPipeline(self._exchange, self._engine)
        return self._pipeline

    async def _upload_file(
        self,
        pipeline: FileUploadPipeline,
        tracked: TrackedFile,
        handle: CancelHandle,
        cohort: Cohort,
    ) -> None:
        outcome = await pipeline.run(tracked, handle, on_progress=self._on_progress)
        await self._apply_outcome(tracked.file_id, outcome, cohort)

    def _task_done(self, file_id: str, cohort: Cohort, task: asyncio.Task) -> None:
        if self._tasks.get(file_id) is task:
            del self._tasks[file_id]
        if self._cohorts.get(file_id) is cohort:
            del self._cohorts[file_id]
        cohort.settle()

        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[batch] Upload task for {file_id} crashed", exc_info=task.exception())

    async def _on_progress(self, event: ProgressEvent) -> None:
        current = self._files.get(event.file_id)
        if current is None or current.state != FileState.UPLOADING:
            return

        # Keep the maximum observed value
        fraction = max(current.progress, event.fraction)
        if fraction == current.progress:
            return

        updated = current.with_changes(progress=fraction)
        self._files[event.file_id] = updated
        await self._events.emit("file_changed", updated)

        cohort = self._cohorts.get(event.file_id)
        if cohort is not None:
            await self._events.emit("batch_progress", self._cohort_progress(cohort))

    async def _apply_outcome(self, file_id: str, outcome: FileOutcome, cohort: Cohort) -> None:
        current = self._files.get(file_id)
        if current is None or current.state != FileState.UPLOADING:
            logger.debug(f"[batch] Dropping {outcome.state.value} outcome for departed file {file_id}")
            return

        if outcome.state == FileState.CANCELLED:
            await self._discard(file_id)
            return

        if outcome.state == FileState.SUCCESS:
            updated = current.with_changes(
                state=FileState.SUCCESS,
                progress=1.0,
                url=outcome.url,
                cancel_handle=None,
            )
            cohort.urls.append(outcome.url)
        else:
            updated = current.with_changes(
                state=FileState.ERROR,
                error=outcome.error,
                cancel_handle=None,
            )
            cohort.failed.append(current.filename)
            logger.info(f"[batch] {current.filename} failed: {outcome.error}")

        self._files[file_id] = updated
        await self._events.emit("file_changed", updated)
        await self._events.emit("batch_progress", self._cohort_progress(cohort))

    async def _discard(self, file_id: str) -> None:
        record = self._files.pop(file_id, None)
        if record is None:
            return
        if record.preview is not None:
            record.preview.release()
        logger.debug(f"[batch] Removed {record.filename}")
        await self._events.emit("file_removed", file_id)

    def _cohort_progress(self, cohort: Cohort) -> float:
        """Size-weighted progress of the files of a cohort still in the batch."""
        done = 0.0
        total = 0.0
        for file_id in cohort.file_ids:
            record = self._files.get(file_id)
            if record is None:
                continue
            weight = float(max(cohort.sizes.get(file_id, 0), 1))
            value = record.progress if record.state == FileState.UPLOADING else 1.0
            done += weight * value
            total += weight
        if total == 0:
            return 1.0
        return min(done / total, 1.0)

    async def _finish(self, cohort: Cohort) -> BatchResult:
        result = UploadResult(tuple(cohort.urls))
        failure = FailureNotice(tuple(cohort.failed)) if cohort.failed else None
        files = tuple(self._files[f] for f in cohort.file_ids if f in self._files)

        logger.info(
            f"[batch] Finished: {len(result.urls)} uploaded, {len(cohort.failed)} failed, "
            f"{len(cohort.file_ids) - len(result.urls) - len(cohort.failed)} cancelled"
        )
        if result.urls:
            await self._events.emit("result", result)
        if failure is not None:
            await self._events.emit("failure", failure)
        return BatchResult(result=result, failure=failure, files=files)
