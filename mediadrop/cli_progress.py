"""Console rendering and progress helpers for the mediadrop CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from .errors import ValidationError
from .models import FailureNotice, FileState, TrackedFile, UploadResult

console = Console()


def _echo(message: str) -> None:
    console.print(message)


def human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]mediadrop[/bold green]",
        subtitle="[dim]signed-URL uploader[/dim]",
        border_style="blue",
    )
    console.print(panel)


class BatchProgressDisplay:
    """Event-based console display for one upload batch."""

    def __init__(self):
        self._tasks: Dict[str, TaskID] = {}
        self._names: Dict[str, str] = {}
        self._states: Dict[str, FileState] = {}
        self._overall_task_id: Optional[TaskID] = None
        self._live: Optional[Live] = None
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold green]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            expand=False,
            console=console,
        )

    def _emit_timeline(self, status: str, name: str, detail: Optional[str] = None) -> None:
        stamp = time.strftime("%H:%M:%S")
        palette = {
            "DONE": "green",
            "FAIL": "red",
            "SKIP": "yellow",
            "INFO": "blue",
        }
        color = palette.get(status, "white")
        suffix = f" [dim]{detail}[/dim]" if detail else ""
        _echo(f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] {name}{suffix}")

    def start(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            self._progress,
            console=console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()
        self._overall_task_id = self._progress.add_task("overall", label="Overall", total=1.0, completed=0)

    def stop(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def on_file_added(self, tracked: TrackedFile) -> None:
        self._names[tracked.file_id] = tracked.filename
        self._tasks[tracked.file_id] = self._progress.add_task(
            "upload",
            label=tracked.filename[:60],
            total=max(tracked.size, 1),
            start=False,
        )
        kind = tracked.kind.value
        preview = " (preview ready)" if tracked.preview is not None else ""
        self._emit_timeline("INFO", tracked.filename, f"{kind}, {human_size(tracked.size)}{preview}")

    def on_file_changed(self, tracked: TrackedFile) -> None:
        task_id = self._tasks.get(tracked.file_id)
        if task_id is None:
            return
        self._states[tracked.file_id] = tracked.state

        if tracked.state == FileState.UPLOADING:
            self._progress.start_task(task_id)
            self._progress.update(task_id, completed=int(tracked.progress * max(tracked.size, 1)))
            return

        if tracked.state == FileState.SUCCESS:
            self._progress.update(task_id, completed=max(tracked.size, 1))
            self._emit_timeline("DONE", tracked.filename)
        elif tracked.state == FileState.ERROR:
            self._emit_timeline("FAIL", tracked.filename, tracked.error)

    def on_file_removed(self, file_id: str) -> None:
        task_id = self._tasks.pop(file_id, None)
        name = self._names.pop(file_id, file_id)
        state = self._states.pop(file_id, None)
        if task_id is not None:
            self._progress.remove_task(task_id)
        if state == FileState.UPLOADING:
            self._emit_timeline("SKIP", name, "cancelled")

    def on_batch_progress(self, fraction: float) -> None:
        if self._overall_task_id is not None:
            self._progress.update(self._overall_task_id, completed=fraction)

    def on_rejected(self, error: ValidationError) -> None:
        _echo(f"[red]Rejected:[/red] {error}")

    def on_result(self, result: UploadResult) -> None:
        self.stop()
        _echo("[bold green]Files uploaded successfully![/bold green]")
        for idx, url in enumerate(result.urls, 1):
            _echo(f"URL {idx}: {url}")

    def on_failure(self, notice: FailureNotice) -> None:
        self.stop()
        _echo(f"[red]Error:[/red] {notice.message}")
