"""Console rendering and progress helpers for the album-up CLI."""
from __future__ import annotations

from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table

from .models import (
    CandidateId,
    IntakeReport,
    Notification,
    NotificationLevel,
    ProgressState,
    ProgressView,
    SessionOutcome,
    SessionSnapshot,
)

console = Console()

_LEVEL_STYLES = {
    NotificationLevel.INFO: "cyan",
    NotificationLevel.WARNING: "yellow",
    NotificationLevel.ERROR: "red",
}
_STATE_STYLES = {
    ProgressState.PENDING: "dim",
    ProgressState.TRANSFERRING: "cyan",
    ProgressState.COMPLETED: "green",
    ProgressState.FAILED: "red",
}


def _human_size(value: int) -> str:
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
        title="[bold green]album-up[/bold green]",
        subtitle="[dim]album uploader[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_intake_summary(report: IntakeReport, snapshot: SessionSnapshot) -> None:
    """List the session's candidates with their validation status."""
    table = Table(title="Selected files", title_justify="left")
    table.add_column("File", style="bold")
    table.add_column("Kind")
    table.add_column("Size", justify="right")
    table.add_column("Status")

    total_size = 0
    for candidate in snapshot.candidates:
        total_size += candidate.size
        kind = candidate.kind.value if candidate.kind else "-"
        status = "[green]ready[/green]" if candidate.is_valid else f"[red]{candidate.rejection_reason}[/red]"
        table.add_row(candidate.name, kind, _human_size(candidate.size), status)
    console.print(table)

    console.print(
        f"{len(snapshot.candidates)} file(s), {_human_size(total_size)} total: "
        f"[green]{report.accepted_count} accepted[/green], "
        f"[yellow]{report.duplicate_count} duplicate(s)[/yellow], "
        f"[red]{report.rejected_count} rejected[/red]"
    )


class ConsoleNotificationSink:
    """Prints notifications to the console."""

    def notify(self, notification: Notification) -> None:
        color = _LEVEL_STYLES[notification.level]
        console.print(f"[{color}]{notification.level.value.upper():<7}[/{color}] {notification.message}")


class RunProgressDisplay:
    """Progress bars driven by the session's "transition" events."""

    def __init__(self, snapshot: SessionSnapshot):
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[filename]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("{task.fields[status]}"),
            expand=False,
            console=console,
        )
        self._tasks: Dict[CandidateId, TaskID] = {}
        self._names = {c.id: c.name for c in snapshot.candidates}
        self._started = False

    def start(self) -> None:
        if not self._started:
            self._progress.start()
            self._started = True

    def stop(self) -> None:
        if self._started:
            self._progress.stop()
            self._started = False

    def on_transition(self, view: ProgressView) -> None:
        task_id = self._task_for(view.candidate_id)
        style = _STATE_STYLES[view.state]
        status = f"[{style}]{view.state.value}[/{style}]"
        if view.error:
            status = f"{status} [dim]{view.error}[/dim]"
        self._progress.update(task_id, completed=view.progress, status=status)

    def _task_for(self, candidate_id: CandidateId) -> TaskID:
        task_id = self._tasks.get(candidate_id)
        if task_id is None:
            name = self._names.get(candidate_id, candidate_id.name)
            task_id = self._progress.add_task("upload", filename=name[:60], total=100, status="")
            self._tasks[candidate_id] = task_id
        return task_id


def render_outcome(outcome: SessionOutcome, snapshot: Optional[SessionSnapshot] = None) -> None:
    """Final per-file result table and totals."""
    if snapshot is not None and snapshot.progress:
        table = Table(title="Upload results", title_justify="left")
        table.add_column("File", style="bold")
        table.add_column("State")
        table.add_column("Detail")
        for view in snapshot.progress:
            style = _STATE_STYLES[view.state]
            table.add_row(
                view.candidate_id.name,
                f"[{style}]{view.state.value}[/{style}]",
                view.error or "",
            )
        console.print(table)

    summary = (
        f"[green]{len(outcome.committed)} uploaded[/green], "
        f"[red]{len(outcome.failed)} failed[/red]"
    )
    if outcome.cancelled:
        summary += f", [yellow]{len(outcome.cancelled)} not sent[/yellow]"
    console.print(f"{outcome.collection_id}: {summary}")
