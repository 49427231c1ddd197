"""Services for mediadrop."""
from .api_client import ExchangeClient, derive_object_key
from .preview import PreviewHandle, PreviewService
from .transfer import CancelHandle, TransferEngine
from .validator import ValidationOutcome, Validator

__all__ = [
    "ExchangeClient",
    "derive_object_key",
    "PreviewHandle",
    "PreviewService",
    "CancelHandle",
    "TransferEngine",
    "ValidationOutcome",
    "Validator",
]
