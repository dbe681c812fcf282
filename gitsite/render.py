"""
Rendering functions for gitsite terminal output.

This module handles the pretty-printing of a run's summary.
Services return data, this module makes it human-readable.
"""

from rich.table import Table
from rich.console import Console
from rich import box
from rich.markup import escape
from typing import List, Optional

from .domain import GenerationSummary, TaskKind, TaskStatus

console = Console(stderr=True)

KIND_LABELS = {
    TaskKind.BRANCH: "Branches",
    TaskKind.BRANCH_PAGE: "Branch pages",
    TaskKind.COMMIT_PAGE: "Commit pages",
    TaskKind.DIFF_PAGE: "Diff pages",
    TaskKind.OBJECT: "Objects",
    TaskKind.INDEX_PAGE: "Index",
}


def render_table(headers: List[str], rows: List[List[str]], title: Optional[str] = None) -> None:
    """
    Render a generic table with the given headers and rows.

    Args:
        headers: List of column headers
        rows: List of rows, where each row is a list of values
        title: Optional table title
    """
    if not rows:
        console.print("[yellow]No data to display.[/yellow]")
        return

    table = Table(
        title=title,
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )

    for header in headers:
        table.add_column(header)

    for row in rows:
        table.add_row(*[str(val) for val in row])

    console.print(table)


def summary_rows(summary: GenerationSummary) -> List[List[str]]:
    """One row per task kind present in ``summary``, in pipeline order."""
    grouped = summary.by_kind()
    rows = []
    for kind in TaskKind:
        counts = grouped.get(kind)
        if not counts:
            continue
        rows.append([
            KIND_LABELS[kind],
            str(counts[TaskStatus.SUCCESS]),
            str(counts[TaskStatus.SKIPPED]),
            str(counts[TaskStatus.FAILED]),
        ])
    return rows


def render_summary(summary: GenerationSummary, max_errors: int = 10) -> None:
    """
    Render a run summary as a table, followed by the first failures.

    Args:
        summary: Result of a generation run
        max_errors: How many failure messages to list
    """
    render_table(
        ["Task", "Done", "Skipped", "Failed"],
        summary_rows(summary),
        title="Site generation"
    )

    if summary.success:
        console.print(f"[green]✓[/green] {summary.successful} of {summary.total} tasks completed")
        return

    console.print(f"[red]✗[/red] {summary.failed} of {summary.total} tasks failed")
    for error in summary.errors[:max_errors]:
        console.print(f"  [dim]{escape(error)}[/dim]", highlight=False)
    if len(summary.errors) > max_errors:
        console.print(f"  ... and {len(summary.errors) - max_errors} more")
