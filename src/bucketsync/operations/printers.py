"""
Human-readable output formatting.

Centralizes all CLI output formatting so commands stay thin and focused.
"""
from __future__ import annotations

from typing import Iterable, Optional

from rich.console import Console
from rich.table import Table

from ..messages import SEVERITY_ERROR, Message
from ..models import Resource
from ..maintenance import OrphanReport, RepairReport
from ..publisher import PublishReport

_console = Console()
_error_console = Console(stderr=True)


def print_progress(message: str) -> None:
    _console.print(message)


def print_error(exc: BaseException) -> None:
    """Print a failed command's exception to stderr."""
    _error_console.print(f"[bold red]Error:[/] {type(exc).__name__}: {exc}", markup=True, highlight=False)


def print_messages(messages: Iterable[Message]) -> None:
    for message in messages:
        style = "red" if message.severity == SEVERITY_ERROR else "yellow"
        _console.print(f"[{style}]{message.severity}:[/] {message.text}", highlight=False)


def print_publish_report(collection: str, report: PublishReport, messages: Iterable[Message] = ()) -> None:
    """
    Print the outcome of a collection publishing pass.

    Args:
        collection: Collection name
        report: Pass outcome
        messages: Messages recorded during the pass
    """
    table = Table(title=f"Published collection {collection}")
    table.add_column("Published", justify="right", style="green")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Removed", justify="right", style="yellow")
    table.add_row(str(report.published), str(report.skipped), str(report.failed), str(report.removed))
    _console.print(table)
    print_messages(messages)
    _print_failures(report.failures)


def print_repair_progress(resource: Resource, error: Optional[Exception]) -> None:
    if error is None:
        _console.print(f"[green]✓[/] {resource.sha1} {resource.filename}", highlight=False)
    else:
        _console.print(f"[red]✗[/] {resource.sha1} {resource.filename}: {error}", highlight=False)


def print_repair_report(collection: str, report: RepairReport) -> None:
    _console.print(
        f"[bold]Metadata repair of {collection}:[/] {report.updated} updated, {report.failed} failed"
    )
    _print_failures(report.failures)
    if report.failures:
        first_sha1 = report.failures[0][0]
        _console.print(f"[dim]Resume with --resume-from {first_sha1}[/]")


def print_orphan_report(report: OrphanReport, *, export_path: Optional[str] = None, deleted: bool = False) -> None:
    _console.print(
        f"[bold]Storage {report.storage}:[/] {report.scanned} objects scanned, {len(report.orphans)} orphans"
    )
    if not export_path and not deleted:
        for key in report.orphans:
            _console.print(f"  {key}", highlight=False)
    if export_path:
        _console.print(f"Orphan keys exported to {export_path}")
    if deleted:
        _console.print(f"{report.deleted} orphans deleted, {report.failed} failed")


def _print_failures(failures: Iterable[tuple]) -> None:
    failures = list(failures)
    if not failures:
        return
    table = Table(title="Failures")
    table.add_column("SHA1", style="dim")
    table.add_column("Filename", style="cyan")
    for sha1, filename in failures:
        table.add_row(sha1, filename)
    _console.print(table)
