"""Console rendering and progress helpers for the vidup CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Iterable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .models import StoredRecord, TaskSnapshot, TaskStatus, UploadTask


console = Console()


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


def human_duration(ms: Optional[int]) -> str:
    if ms is None:
        return "-"
    seconds = ms / 1000
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def render_configuration_summary(config: Dict[str, Any], out: Optional[Console] = None) -> None:
    """Render startup configuration summary."""
    out = out or console
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    out.print(
        Panel(
            table,
            title="[bold green]vidup[/bold green]",
            subtitle="[dim]chunked video upload[/dim]",
            border_style="blue",
        )
    )


def render_history(records: Iterable[StoredRecord], out: Optional[Console] = None) -> None:
    """Render history records as a table."""
    out = out or console
    table = Table(title="Upload history", header_style="bold cyan")
    table.add_column("ID", justify="right")
    table.add_column("File")
    table.add_column("Platform")
    table.add_column("Size", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Uploaded")
    table.add_column("URL", overflow="fold")

    count = 0
    for r in records:
        table.add_row(
            str(r.id),
            r.file_name,
            r.platform or "N/A",
            human_size(r.file_size),
            human_duration(r.upload_duration),
            r.uploaded_at.astimezone().strftime("%Y-%m-%d %H:%M"),
            r.url,
        )
        count += 1

    if count == 0:
        out.print("[dim]No uploads yet.[/dim]")
        return
    out.print(table)


class BatchUploadProgressDisplay:
    """Event-based console display for a batch of uploads (one bar per file)."""

    def __init__(self, out: Optional[Console] = None):
        self._console = out or console
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[dim]{task.fields[chunks]}"),
            TimeElapsedColumn(),
            expand=False,
            console=self._console,
        )
        self._bars: Dict[str, TaskID] = {}
        self._started = False

    def start(self) -> None:
        if not self._started:
            self._progress.start()
            self._started = True

    def stop(self) -> None:
        if self._started:
            self._progress.stop()
            self._started = False

    def on_task_start(self, task: UploadTask) -> None:
        self.start()
        self._bars[task.id] = self._progress.add_task(
            "upload",
            label=task.display_name[:60],
            total=100,
            chunks=f"0/{task.total_chunks} chunks",
        )

    def on_progress(self, snapshot: TaskSnapshot) -> None:
        bar = self._bars.get(snapshot.task_id)
        if bar is None:
            return
        self._progress.update(
            bar,
            completed=snapshot.progress,
            chunks=f"{snapshot.completed_chunks}/{snapshot.total_chunks} chunks",
        )

    def on_task_finished(self, task: UploadTask) -> None:
        bar = self._bars.pop(task.id, None)
        if bar is not None:
            self._progress.remove_task(bar)

        stamp = time.strftime("%H:%M:%S")
        if task.status is TaskStatus.SUCCEEDED:
            self._console.print(
                f"[dim]{stamp}[/dim] [green]DONE[/green] {task.upload_name} "
                f"{human_size(task.file_size)} in {human_duration(task.duration_ms)}\n"
                f"     [blue]{task.result_url}[/blue]"
            )
        elif task.status is TaskStatus.CANCELLED:
            self._console.print(f"[dim]{stamp}[/dim] [yellow]STOP[/yellow] {task.display_name}")
        else:
            self._console.print(
                f"[dim]{stamp}[/dim] [red]FAIL[/red] {task.display_name} cause={task.error_reason}"
            )

    def on_warning(self, message: str) -> None:
        self._console.print(f"[yellow]Warning:[/yellow] {message}")

    def on_finish(self, succeeded: int, failed: int, cancelled: int, pending: int) -> None:
        self.stop()
        self._console.print(
            f"[bold]Finished[/bold] uploaded={succeeded} failed={failed} "
            f"cancelled={cancelled} pending={pending}"
        )
