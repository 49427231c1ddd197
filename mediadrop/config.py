"""Upload configuration."""
import os
from dataclasses import dataclass
from typing import Optional

from .models import MediaKind

MB = 1024 * 1024

DEFAULT_ENDPOINT = "http://127.0.0.1:8000/api/upload"


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload batches."""
    endpoint: str = DEFAULT_ENDPOINT
    csrf_token: str = ""
    csrf_header: str = "x-csrf-token"
    max_image_bytes: int = 5 * MB
    max_video_bytes: int = 50 * MB
    max_files: int = 10
    request_timeout: float = 30.0
    transfer_timeout: float = 300.0
    chunk_size: int = 64 * 1024
    key_prefix: str = "uploads/"
    generate_preview: bool = True
    preview_size: int = 96

    def limit_for(self, kind: MediaKind) -> int:
        """Size limit in bytes for a policy class."""
        if kind == MediaKind.IMAGE:
            return self.max_image_bytes
        return self.max_video_bytes

    def limit_mb(self, kind: MediaKind) -> str:
        """Size limit rendered in MB (``5``, ``50``, ``2.5``)."""
        return f"{self.limit_for(kind) / MB:g}"

    @classmethod
    def from_env(cls, endpoint: Optional[str] = None, csrf_token: Optional[str] = None) -> "UploadConfig":
        """Build configuration from MEDIADROP_* environment variables."""
        return cls(
            endpoint=endpoint or os.getenv("MEDIADROP_API_URL") or DEFAULT_ENDPOINT,
            csrf_token=csrf_token if csrf_token is not None else os.getenv("MEDIADROP_CSRF_TOKEN", ""),
            max_image_bytes=env_int("MEDIADROP_MAX_IMAGE_MB", 5) * MB,
            max_video_bytes=env_int("MEDIADROP_MAX_VIDEO_MB", 50) * MB,
            max_files=env_int("MEDIADROP_MAX_FILES", 10),
        )
