"""Orchestrator package - coordinates upload batches."""
from .core import BatchOrchestrator
from .file_upload import FileOutcome, FileUploadPipeline
from .models import BatchResult

__all__ = ["BatchOrchestrator", "BatchResult", "FileOutcome", "FileUploadPipeline"]
