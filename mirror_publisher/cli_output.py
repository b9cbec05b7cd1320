"""Console rendering helpers for mirror-publish CLI."""
from __future__ import annotations

from typing import Any, Dict

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import PublishSummary

console = Console()


def mask_secret(value: Any) -> str:
    if not value:
        return "-"
    return "*" * 8


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
        title="[bold green]mirror-publish[/bold green]",
        subtitle="[dim]repository publisher[/dim]",
        border_style="blue",
    )
    console.print(panel)


def render_finish(summary: PublishSummary) -> None:
    style = "green" if summary.all_published else "yellow"
    console.print(
        f"[bold {style}]Finished[/bold {style}] submitted={summary.submitted} "
        f"uploaded={summary.succeeded} present={summary.already_existed} "
        f"failed={summary.failed} unfinished={summary.unfinished}"
    )
