"""
Protocols (Interfaces) for Dependency Inversion.

The orchestrator depends on these, not on the httpx-backed services.
"""
from typing import Awaitable, Callable, Optional, Protocol, runtime_checkable

from .models import CandidateFile, ProgressEvent, TrackedFile, TransferOutcome, UploadTarget

ProgressCallback = Callable[[ProgressEvent], Optional[Awaitable[None]]]


@runtime_checkable
class IExchangeClient(Protocol):
    """Interface for the signed-URL exchange backend."""

    async def request_upload_target(self, filename: str, content_type: str) -> UploadTarget:
        """Obtain a write-capable signed URL."""
        ...

    async def request_view_url(self, object_key: str) -> str:
        """Obtain a read-capable signed URL for a stored object."""
        ...


@runtime_checkable
class ITransferEngine(Protocol):
    """Interface for the byte transfer to a signed URL."""

    async def transfer(
        self,
        tracked: TrackedFile,
        write_url: str,
        *,
        on_progress: Optional[ProgressCallback] = None,
        cancel_handle=None,
    ) -> TransferOutcome:
        """PUT the file content to ``write_url``."""
        ...


@runtime_checkable
class IPreviewFactory(Protocol):
    """Interface for local preview materialisation."""

    def create(self, candidate: CandidateFile):
        """Return a releasable preview handle, or None."""
        ...
