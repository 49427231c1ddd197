"""Orchestrator data models."""
import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..models import FailureNotice, TrackedFile, UploadResult


@dataclass
class BatchResult:
    """Result of one batch start."""
    result: UploadResult
    failure: Optional[FailureNotice] = None
    files: Tuple[TrackedFile, ...] = ()

    @property
    def urls(self) -> Tuple[str, ...]:
        return self.result.urls

    @property
    def all_success(self) -> bool:
        return self.failure is None


@dataclass
class Cohort:
    """
    Files moved to uploading by one start.

    Collects each outcome independently: ``outstanding`` counts files not
    yet terminal or removed, ``done`` is set when it reaches zero.
    """
    file_ids: List[str]
    sizes: Dict[str, int] = field(default_factory=dict)
    urls: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    outstanding: int = 0
    done: asyncio.Event = field(default_factory=asyncio.Event)

    def __post_init__(self):
        self.outstanding = len(self.file_ids)
        if self.outstanding == 0:
            self.done.set()

    def settle(self) -> None:
        self.outstanding -= 1
        if self.outstanding <= 0:
            self.done.set()
