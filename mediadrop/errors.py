"""Error taxonomy for mediadrop."""
from enum import Enum
from typing import Optional


class MediadropError(Exception):
    """Base class for mediadrop errors."""


class ValidationError(MediadropError):
    """A candidate file was rejected before entering the batch."""

    def __init__(self, filename: str, reason: str):
        self.filename = filename
        self.reason = reason
        super().__init__(f"{filename}: {reason}")


class ExchangeKind(Enum):
    """Which signed-URL exchange failed."""
    UPLOAD_TARGET = "upload_target"
    VIEW_URL = "view_url"


class ExchangeError(MediadropError):
    """Signed-URL request/response failure. Message is safe to show a user."""

    def __init__(self, message: str, kind: ExchangeKind, status_code: Optional[int] = None):
        self.message = message
        self.kind = kind
        self.status_code = status_code
        super().__init__(message)


class TransferError(MediadropError):
    """Network or storage failure during the byte transfer."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)
