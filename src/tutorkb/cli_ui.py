"""Terminal output helpers for the tutorkb CLI (rich)."""

from typing import Iterable, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

_STATUS_MARKS = {
    "ok": "[green]✓[/green]",
    "warn": "[yellow]⚠[/yellow]",
    "fail": "[red]✗[/red]",
}


def print_header(title: str) -> None:
    console.rule(f"[bold]{title}[/bold]")


def print_section(title: str) -> None:
    console.print(f"\n[bold cyan]{title}[/bold cyan]")


def print_kv(pairs: Iterable[Tuple[str, str]]) -> None:
    """Aligned key/value lines."""
    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column(style="bold")
    table.add_column()
    for key, value in pairs:
        table.add_row(key, value)
    console.print(table)


def print_table(
    title: Optional[str],
    headers: Sequence[str],
    rows: Iterable[Sequence[str]],
    styles: Optional[List[Optional[str]]] = None,
) -> None:
    table = Table(title=title)
    for i, header in enumerate(headers):
        style = styles[i] if styles and i < len(styles) else None
        table.add_column(header, style=style)
    for row in rows:
        table.add_row(*(str(v) for v in row))
    console.print(table)


def print_markdown(text: str) -> None:
    console.print(Markdown(text))


def print_status_line(status: str, message: str) -> None:
    """One check result: status is ok, warn or fail."""
    console.print(f"  {_STATUS_MARKS.get(status, status)} {message}")


def print_summary(errors: int, warnings: int) -> None:
    if errors:
        console.print(f"[red]{errors} error(s)[/red], {warnings} warning(s)")
    elif warnings:
        console.print(f"[yellow]{warnings} warning(s)[/yellow]")
    else:
        console.print("[green]All checks passed[/green]")


def print_error(message: str) -> None:
    err_console.print(f"[red]✗[/red] {message}")
