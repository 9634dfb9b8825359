"""
CLI utility helpers: file loading and output formatting.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from relay.execution.step import StepResult

console = Console()
err_console = Console(stderr=True)


# ── Input helpers ────────────────────────────────────────────────────────


def read_json(path: Path) -> Any:
    """Parse a JSON file, exiting with a readable message on bad input."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        err_console.print(f"[bold red]Error[/bold red]: {path} does not exist")
        raise typer.Exit(code=1) from None
    except json.JSONDecodeError as e:
        err_console.print(f"[bold red]Error[/bold red]: {path} is not valid JSON ({e})")
        raise typer.Exit(code=1) from None


def read_optional_json(path: Path) -> dict[str, Any]:
    """Like :func:`read_json` but a missing file reads as ``{}``."""
    if not path.exists():
        err_console.print(f"[dim]{path.name} not found, using {{}}[/dim]")
        return {}
    return read_json(path)


# ── Output helpers ───────────────────────────────────────────────────────


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def print_results(results: list[StepResult], *, as_json: bool = False, title: str = "") -> None:
    """Render step results as a Rich table (or JSON)."""
    if as_json:
        print_json([r.to_dict() for r in results])
        return

    table = Table(title=title or None, show_lines=False, pad_edge=False)
    table.add_column("step")
    table.add_column("output", overflow="fold")
    table.add_column("error", overflow="fold", style="red")
    table.add_column("ms", justify="right")

    for result in results:
        duration = result.duration_ms
        table.add_row(
            str(result.step),
            "" if result.output is None else str(result.output),
            "" if result.error is None else str(result.error),
            f"{duration:.1f}" if duration is not None else "",
        )
    console.print(table)


def fail(message: str, code: int = 1) -> typer.Exit:
    err_console.print(f"[bold red]Error[/bold red]: {message}")
    return typer.Exit(code=code)
