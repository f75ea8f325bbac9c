"""Rich console output for the command line entry point."""

from rich.console import Console
from rich.table import Table

console = Console()


def header(msg: str):
    console.print(f"\n[bold]{msg}[/bold]")


def ok(msg: str):
    console.print(f"  [green]✓[/green] {msg}")


def fail(msg: str):
    console.print(f"  [red]✗[/red] {msg}")


def report(title: str, rows: dict):
    """Two-column table of named quantities."""
    table = Table(title=title)
    table.add_column("Quantity", style="cyan")
    table.add_column("Value", justify="right")
    for name, value in rows.items():
        table.add_row(name, f"{value:.6e}" if isinstance(value, float) else str(value))
    console.print(table)
