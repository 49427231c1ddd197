"""
mediadrop - direct-to-storage media uploads through short-lived signed URLs.

Files are validated locally, each accepted file is PUT straight to object
storage with a write URL minted by a backend, and a viewable URL is
resolved for every file that made it.

Usage:
    from mediadrop import BatchOrchestrator, CandidateFile, UploadConfig

    async with BatchOrchestrator(UploadConfig.from_env()) as batch:
        batch.on_rejected(lambda error: print(error))
        await batch.add_files([CandidateFile.from_path(p) for p in paths])
        outcome = await batch.start()

    outcome.urls      # viewable URLs, in the order they resolved
    outcome.failure   # FailureNotice or None
"""
from .config import UploadConfig
from .errors import ExchangeError, ExchangeKind, MediadropError, TransferError, ValidationError
from .models import (
    CandidateFile,
    FailureNotice,
    FileState,
    MediaKind,
    ProgressEvent,
    TrackedFile,
    TransferOutcome,
    TransferStatus,
    UploadResult,
    UploadTarget,
)
from .orchestrator import BatchOrchestrator, BatchResult
from .services import (
    CancelHandle,
    ExchangeClient,
    PreviewService,
    TransferEngine,
    Validator,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "BatchOrchestrator",
    "BatchResult",
    "UploadConfig",
    # Models
    "CandidateFile",
    "FailureNotice",
    "FileState",
    "MediaKind",
    "ProgressEvent",
    "TrackedFile",
    "TransferOutcome",
    "TransferStatus",
    "UploadResult",
    "UploadTarget",
    # Errors
    "MediadropError",
    "ValidationError",
    "ExchangeError",
    "ExchangeKind",
    "TransferError",
    # Services
    "CancelHandle",
    "ExchangeClient",
    "PreviewService",
    "TransferEngine",
    "Validator",
]
