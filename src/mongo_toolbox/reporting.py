"""Rich-based reporting utilities for the toolbox CLI."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table

console = Console()


def print_json(payload: Dict[str, Any]) -> None:
    """Print a JSON payload with syntax highlighting."""
    console.print(JSON(json.dumps(payload, indent=2, default=str)))


def print_operation_summary(
    operation: str,
    collection: str,
    affected: List[Any],
    dry_run: bool = False,
    failures: Optional[List[Dict[str, Any]]] = None,
) -> None:
    """Print a one-panel summary of a bulk operation."""
    failures = failures or []
    verb = "would touch" if dry_run else "touched"
    lines = [f"[bold]{operation}[/bold] on [cyan]{collection}[/cyan] {verb} [green]{len(affected)}[/green] documents"]
    if failures:
        lines.append(f"[red]{len(failures)} documents failed[/red]")
    border = "red" if failures else "blue"
    console.print(Panel("\n".join(lines), title="Summary", border_style=border))

    if failures:
        print_failures_table(failures)


def print_failures_table(failures: List[Dict[str, Any]]) -> None:
    table = Table(title="Failures", show_header=True, header_style="bold red")
    table.add_column("Document", style="bold")
    table.add_column("Phase", style="magenta")
    table.add_column("Error")

    for failure in failures:
        table.add_row(
            str(failure.get("document_id", "?")),
            str(failure.get("phase", "")),
            str(failure.get("error", "")),
        )

    console.print(table)
