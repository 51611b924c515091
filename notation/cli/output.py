"""Terminal output handling using Rich library.

This module provides the OutputHandler class for all CLI terminal output.
Uses Rich library for spinners, colored output and the per-page outcome
table. Supports verbosity levels and --no-color flag.
"""

from contextlib import contextmanager
from typing import Iterator

from rich.console import Console
from rich.live import Live
from rich.spinner import Spinner
from rich.table import Table

from ..page_operations.models import OutcomeStatus, SyncReport

# Style and label per outcome status
STATUS_STYLES = {
    OutcomeStatus.CREATED: ("green", "created"),
    OutcomeStatus.UPDATED: ("blue", "updated"),
    OutcomeStatus.SKIPPED: ("dim", "unchanged"),
    OutcomeStatus.FAILED: ("red", "failed"),
    OutcomeStatus.PARTIALLY_PUBLISHED: ("bold red", "PARTIALLY PUBLISHED"),
    OutcomeStatus.CANCELLED: ("yellow", "cancelled"),
}

# Labels used for a dry run, where statuses are the planned operations
DRY_RUN_LABELS = {
    OutcomeStatus.CREATED: "would create",
    OutcomeStatus.UPDATED: "would update",
    OutcomeStatus.SKIPPED: "unchanged",
}


class OutputHandler:
    """Handles all terminal output using Rich library.

    Attributes:
        verbosity: Verbosity level (0=summary, 1=info, 2=debug)
        console: Rich Console instance for output

    Example:
        >>> handler = OutputHandler(verbosity=1, no_color=False)
        >>> handler.success("Operation completed")
        >>> with handler.spinner("Publishing..."):
        ...     pass
    """

    def __init__(self, verbosity: int = 0, no_color: bool = False):
        """Initialize output handler.

        Args:
            verbosity: Verbosity level (0=summary, 1=info, 2=debug)
            no_color: Disable color output if True
        """
        self.verbosity = verbosity
        self.console = Console(
            no_color=no_color,
            highlight=False,
        )

    def success(self, message: str) -> None:
        """Display success message in green."""
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        """Display error message in red."""
        self.console.print(f"[red]✗[/red] {message}", style="red")

    def warning(self, message: str) -> None:
        """Display warning message in yellow."""
        self.console.print(f"[yellow]⚠[/yellow] {message}", style="yellow")

    def info(self, message: str) -> None:
        """Display info message (only if verbosity >= 1)."""
        if self.verbosity >= 1:
            self.console.print(message)

    def debug(self, message: str) -> None:
        """Display debug message (only if verbosity >= 2)."""
        if self.verbosity >= 2:
            self.console.print(f"[dim]{message}[/dim]")

    def print(self, message: str) -> None:
        """Display message without formatting."""
        self.console.print(message)

    @contextmanager
    def spinner(self, message: str) -> Iterator[None]:
        """Display spinner while a long operation runs.

        Args:
            message: Message to display with spinner

        Example:
            >>> with handler.spinner("Publishing pages..."):
            ...     pass
        """
        spinner = Spinner("dots", text=message)
        with Live(spinner, console=self.console, refresh_per_second=10, transient=True):
            yield

    def print_report(self, report: SyncReport) -> None:
        """Display the per-page outcome table and the run summary.

        Partially published pages are repeated after the table, since their
        remote content is incomplete until the next run.

        Args:
            report: Report of a publish run (or of a dry run)
        """
        title = "Dry Run - Planned Changes" if report.dry_run else "Publish Report"
        table = Table(title=title, title_justify="left", show_lines=False)
        table.add_column("Page")
        table.add_column("Title")
        table.add_column("Status")
        table.add_column("Details", overflow="fold")

        for outcome in report.outcomes:
            style, label = STATUS_STYLES[outcome.status]
            if report.dry_run:
                label = DRY_RUN_LABELS.get(outcome.status, label)
            table.add_row(
                outcome.path,
                outcome.title,
                f"[{style}]{label}[/{style}]",
                outcome.reason or "",
            )

        self.console.print()
        self.console.print(table)

        partial = report.partially_published
        if partial:
            self.console.print(
                f"\n[bold red]⚠ {len(partial)} page(s) were only partially published; "
                f"their remote content is incomplete:[/bold red]"
            )
            for outcome in partial:
                self.console.print(f"  • {outcome.path} ({outcome.remote_id}): {outcome.reason}")

        self._print_summary(report)

    def _print_summary(self, report: SyncReport) -> None:
        counts = report.counts
        self.console.print("\n[bold]Summary:[/bold]")
        if report.dry_run:
            self.console.print(f"  [green]+[/green] Would create: {counts['created']} page(s)")
            self.console.print(f"  [blue]↑[/blue] Would update: {counts['updated']} page(s)")
        else:
            self.console.print(f"  [green]+[/green] Created: {counts['created']} page(s)")
            self.console.print(f"  [blue]↑[/blue] Updated: {counts['updated']} page(s)")
        self.console.print(f"  [dim]─[/dim] Unchanged: {counts['skipped']} page(s)")

        if counts['failed']:
            self.console.print(f"  [red]✗[/red] Failed: {counts['failed']} page(s)")
        if counts['partially_published']:
            self.console.print(f"  [bold red]⚠[/bold red] Partially published: {counts['partially_published']} page(s)")
        if counts['cancelled']:
            self.console.print(f"  [yellow]⊘[/yellow] Cancelled: {counts['cancelled']} page(s)")

        if not report.dry_run:
            self.debug(
                f"{report.follow_up_updates} link update(s), "
                f"{report.api_calls} API call(s), {report.retries} retr(ies)"
            )

        if report.dry_run:
            self.console.print("\n[yellow]Dry run: no changes were made[/yellow]")
        elif not report.succeeded:
            self.console.print("\n[red]Publish completed with failures[/red]")
        elif counts['created'] == 0 and counts['updated'] == 0:
            self.console.print("\n[green]Already up to date. No changes needed.[/green]")
        else:
            self.console.print("\n[green]Publish completed successfully[/green]")

    def print_clear_summary(self, archived: int, deleted: int) -> None:
        """Display the result of the clear command.

        Args:
            archived: Number of child pages archived
            deleted: Number of other blocks deleted
        """
        self.console.print("\n[bold]Clear Summary:[/bold]")
        self.console.print(f"  [red]✗[/red] Archived: {archived} page(s)")
        self.console.print(f"  [red]✗[/red] Deleted: {deleted} block(s)")
