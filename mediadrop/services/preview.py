"""
Preview Service - Single Responsibility: image thumbnails for the batch view.

Thumbnails are written to a private temp directory and must be released
explicitly by whoever holds the handle.
"""
import io
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from ..models import CandidateFile
import logging
logger = logging.getLogger(__name__)


class PreviewHandle:
    """Local reference to a generated thumbnail."""

    def __init__(self, path: Path):
        self._path = Path(path)
        self._released = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Delete the thumbnail and its temp directory. Safe to call twice."""
        if self._released:
            return
        self._released = True
        try:
            self._path.unlink(missing_ok=True)
            if self._path.parent.name.startswith("preview_"):
                shutil.rmtree(self._path.parent, ignore_errors=True)
        except OSError as e:
            logger.warning(f"[preview] Could not remove {self._path}: {e}")

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.release()

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"PreviewHandle({self._path.name}, {state})"


class PreviewService:
    """
    Service for generating image thumbnails.

    Uses Pillow; decode failures are logged and yield no preview.
    """

    def __init__(self, size: int = 96, quality: int = 85):
        self._size = size
        self._quality = quality

    def create(self, candidate: CandidateFile) -> Optional[PreviewHandle]:
        """
        Generate a thumbnail for an image candidate.

        Args:
            candidate: Image file picked by the user

        Returns:
            PreviewHandle, or None if the image could not be decoded
        """
        source = io.BytesIO(candidate.data) if candidate.data is not None else candidate.path
        if source is None:
            return None

        tmp_dir = Path(tempfile.mkdtemp(prefix="preview_"))
        target = tmp_dir / f"{Path(candidate.filename).stem}.jpg"
        try:
            with Image.open(source) as img:
                img.thumbnail((self._size, self._size))
                img.convert("RGB").save(target, "JPEG", quality=self._quality)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.warning(f"[preview] No preview for {candidate.filename}: {e}")
            shutil.rmtree(tmp_dir, ignore_errors=True)
            return None

        logger.debug(f"[preview] Thumbnail generated: {target}")
        return PreviewHandle(target)
