"""
Validator Service - Single Responsibility: admit or reject candidate files.

Classifies by declared MIME type, falling back to the filename extension,
and enforces the per-class size limit.
"""
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..config import UploadConfig
from ..errors import ValidationError
from ..models import CandidateFile, FileState, MediaKind, TrackedFile
from ..protocols import IPreviewFactory
import logging
logger = logging.getLogger(__name__)


IMAGE_TYPES: Dict[str, Tuple[str, ...]] = {
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
    "image/webp": (".webp",),
    "image/gif": (".gif",),
}

VIDEO_TYPES: Dict[str, Tuple[str, ...]] = {
    "video/mp4": (".mp4",),
    "video/quicktime": (".mov",),
    "video/x-msvideo": (".avi",),
    "video/webm": (".webm",),
}

ALLOWED_KINDS_LABEL = "images (JPG, PNG, WebP, GIF) and videos (MP4, MOV, AVI, WebM)"


def _extension_index() -> Dict[str, Tuple[MediaKind, str]]:
    index = {}
    for kind, table in ((MediaKind.IMAGE, IMAGE_TYPES), (MediaKind.VIDEO, VIDEO_TYPES)):
        for content_type, extensions in table.items():
            for ext in extensions:
                index[ext] = (kind, content_type)
    return index


EXTENSIONS = _extension_index()


def classify(candidate: CandidateFile) -> Optional[Tuple[MediaKind, str]]:
    """
    Resolve (kind, content_type) for a candidate.

    The declared MIME type wins when it is on an allow-list; otherwise the
    extension decides and the allow-list type for it is used.
    """
    declared = (candidate.content_type or "").split(";")[0].strip().lower()
    if declared in IMAGE_TYPES:
        return MediaKind.IMAGE, declared
    if declared in VIDEO_TYPES:
        return MediaKind.VIDEO, declared
    return EXTENSIONS.get(candidate.extension)


def _family(content_type: str) -> Optional[MediaKind]:
    declared = (content_type or "").lower()
    if declared.startswith("image/"):
        return MediaKind.IMAGE
    if declared.startswith("video/"):
        return MediaKind.VIDEO
    return None


@dataclass
class ValidationOutcome:
    """Accepted tracked file, or the list of reasons it was rejected."""
    tracked: Optional[TrackedFile] = None
    errors: List[ValidationError] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.tracked is not None


class Validator:
    """
    Admits candidate files into a batch as pending tracked files.

    Args:
        config: Size limits
        previews: Optional preview factory, used for image files only
    """

    def __init__(self, config: Optional[UploadConfig] = None, previews: Optional[IPreviewFactory] = None):
        self._config = config or UploadConfig()
        self._previews = previews

    def validate(self, candidate: CandidateFile) -> ValidationOutcome:
        errors: List[ValidationError] = []
        resolved = classify(candidate)

        if resolved is None:
            errors.append(ValidationError(candidate.filename, f"unsupported type; allowed: {ALLOWED_KINDS_LABEL}"))
            size_class = _family(candidate.content_type)
        else:
            size_class = resolved[0]

        if size_class is not None and candidate.size > self._config.limit_for(size_class):
            errors.append(
                ValidationError(candidate.filename, f"too large: limit is {self._config.limit_mb(size_class)}MB")
            )

        if errors:
            for error in errors:
                logger.info(f"[validator] Rejected {error}")
            return ValidationOutcome(errors=errors)

        kind, content_type = resolved
        preview = None
        if kind == MediaKind.IMAGE and self._previews is not None and self._config.generate_preview:
            preview = self._previews.create(candidate)

        tracked = TrackedFile(
            file_id=uuid.uuid4().hex,
            candidate=candidate,
            kind=kind,
            content_type=content_type,
            state=FileState.PENDING,
            preview=preview,
        )
        logger.debug(f"[validator] Accepted {candidate.filename} as {kind.value} ({content_type})")
        return ValidationOutcome(tracked=tracked)
