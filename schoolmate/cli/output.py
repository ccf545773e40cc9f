"""
Schoolmate CLI - Rich output helpers.

Functions:
    print_table    - Print a formatted table
    print_error    - Print error message (optionally exit)
    print_success  - Print success message
    print_warning  - Print warning message
    print_report   - Print a sweep report
"""

from __future__ import annotations

import sys
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def print_table(
    title: str,
    columns: list[str],
    rows: list[list[str]],
    show_header: bool = True,
) -> None:
    """
    Print a rich table.

    Args:
        title: Table title
        columns: Column headers
        rows: Table rows (list of lists)
        show_header: Whether to show column headers
    """
    table = Table(title=title, show_header=show_header)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*[str(cell) for cell in row])
    console.print(table)


def print_error(
    message: str,
    hint: Optional[str] = None,
    exit_code: Optional[int] = None,
) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {message}")
    if hint:
        err_console.print(f"[yellow]Hint:[/yellow] {hint}")
    if exit_code is not None:
        sys.exit(exit_code)


def print_success(message: str, details: Optional[str] = None) -> None:
    console.print(f"[bold green]Success:[/bold green] {message}")
    if details:
        console.print(f"[dim]{details}[/dim]")


def print_warning(message: str, details: Optional[str] = None) -> None:
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")
    if details:
        console.print(f"[dim]{details}[/dim]")


def print_report(report: dict[str, Any]) -> None:
    """Print a sweep report produced by ``SweepReport.to_dict()``."""
    print_table(
        f"Sweep: {report['job_name']}",
        ["Processed", "Succeeded", "Failed", "Skipped", "Counters"],
        [[
            report["processed"],
            report["succeeded"],
            report["failed"],
            report["skipped"],
            ", ".join(f"{k}={v}" for k, v in sorted(report["counters"].items())) or "-",
        ]],
    )
    for failure in report["failures"]:
        print_warning(
            f"{failure['schema_name']} failed",
            details=failure["error"],
        )
