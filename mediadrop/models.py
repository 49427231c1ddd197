"""
Models for mediadrop.

Immutable dataclasses: every change to a tracked file produces a new record.
"""
import dataclasses
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Optional, Tuple


class MediaKind(Enum):
    """Policy class of an accepted file."""
    IMAGE = "image"
    VIDEO = "video"


class FileState(Enum):
    """State of a tracked file."""
    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (FileState.SUCCESS, FileState.ERROR, FileState.CANCELLED)


@dataclass(frozen=True)
class CandidateFile:
    """
    A file picked by the user, before validation.

    Content lives either in memory (``data``) or on disk (``path``).
    """
    filename: str
    content_type: str
    size: int
    data: Optional[bytes] = field(default=None, repr=False)
    path: Optional[Path] = None

    @classmethod
    def from_path(cls, path: Path, content_type: Optional[str] = None) -> "CandidateFile":
        path = Path(path)
        if content_type is None:
            content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            filename=path.name,
            content_type=content_type or "",
            size=path.stat().st_size,
            path=path,
        )

    @classmethod
    def from_bytes(cls, filename: str, data: bytes, content_type: str = "") -> "CandidateFile":
        return cls(filename=filename, content_type=content_type, size=len(data), data=data)

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()

    def iter_chunks(self, chunk_size: int) -> Iterator[bytes]:
        """Yield the file content in chunks of at most ``chunk_size`` bytes."""
        if self.data is not None:
            for offset in range(0, len(self.data), chunk_size):
                yield self.data[offset:offset + chunk_size]
            return

        if self.path is None:
            raise ValueError(f"{self.filename} has no content")

        with open(self.path, "rb") as fh:
            while True:
                chunk = fh.read(chunk_size)
                if not chunk:
                    break
                yield chunk


@dataclass(frozen=True)
class TrackedFile:
    """
    Orchestrator unit of work: a candidate file plus its upload state.

    ``cancel_handle`` is set only while the file is uploading.
    """
    file_id: str
    candidate: CandidateFile
    kind: MediaKind
    content_type: str
    state: FileState = FileState.PENDING
    progress: float = 0.0
    preview: Optional[Any] = None
    error: Optional[str] = None
    cancel_handle: Optional[Any] = field(default=None, compare=False, repr=False)
    url: Optional[str] = None

    @property
    def filename(self) -> str:
        return self.candidate.filename

    @property
    def size(self) -> int:
        return self.candidate.size

    def with_changes(self, **changes) -> "TrackedFile":
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class UploadTarget:
    """Write-capable signed URL plus the storage key it writes to."""
    write_url: str
    object_key: str


@dataclass(frozen=True)
class ProgressEvent:
    """Bytes handed to the transport for one file."""
    file_id: str
    bytes_sent: int
    total_bytes: int

    @property
    def fraction(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return min(max(self.bytes_sent / self.total_bytes, 0.0), 1.0)


class TransferStatus(Enum):
    """How a byte transfer ended."""
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TransferOutcome:
    """Immutable result of a byte transfer."""
    status: TransferStatus
    reason: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == TransferStatus.SUCCESS

    @property
    def cancelled(self) -> bool:
        return self.status == TransferStatus.CANCELLED

    @classmethod
    def ok(cls):
        return cls(status=TransferStatus.SUCCESS)

    @classmethod
    def fail(cls, reason: str):
        return cls(status=TransferStatus.FAILURE, reason=reason)

    @classmethod
    def aborted(cls):
        return cls(status=TransferStatus.CANCELLED)


@dataclass(frozen=True)
class UploadResult:
    """Viewable URLs of the successful files, in resolution order."""
    urls: Tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.urls)


@dataclass(frozen=True)
class FailureNotice:
    """Aggregate notice for files that ended in error."""
    filenames: Tuple[str, ...]

    @property
    def count(self) -> int:
        return len(self.filenames)

    @property
    def message(self) -> str:
        noun = "file" if self.count == 1 else "files"
        return f"{self.count} {noun} failed to upload: {', '.join(self.filenames)}"
