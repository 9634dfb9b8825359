"""
Root Typer application for the relay CLI.

Usage::

    relay transform mapping.json event.json
    relay run-local slack postToChannel --input ./fixtures
    relay destinations
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import typer
from rich.table import Table

from relay.cli.utils import console, fail, print_json, print_results, read_json, read_optional_json
from relay.core.errors import RelayError
from relay.core.logging import configure_logging
from relay.core.settings import get_settings
from relay.destinations import DESTINATIONS, get_destination
from relay.mapping import MappingOptions, transform

app = typer.Typer(
    name="relay",
    help="relay - run partner actions against events locally.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("relay-core")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"relay {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override RELAY_LOG_LEVEL."),
) -> None:
    """relay CLI - map events, run actions, inspect destinations."""
    settings = get_settings()
    configure_logging(
        level=log_level or settings.log_level,
        json_format=settings.log_json,
        service=settings.service_name,
    )


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("transform")
def transform_command(
    mapping: Path = typer.Argument(..., help="JSON file holding the mapping"),
    payload: Path = typer.Argument(..., help="JSON file holding the event"),
    escape_html: bool = typer.Option(False, "--escape-html", help="HTML-escape @template values"),
) -> None:
    """Resolve MAPPING against PAYLOAD and print the result."""
    try:
        result = transform(read_json(mapping), read_json(payload), MappingOptions(escape_html=escape_html))
    except RelayError as e:
        raise fail(e.message) from e
    print_json(result)


@app.command("run-local")
def run_local(
    destination: str = typer.Argument(..., help="Bundled slug or module:attribute"),
    action: str = typer.Argument(..., help="Action key, e.g. postToChannel"),
    input_dir: Path = typer.Option(Path("."), "--input", "-i", help="Directory with settings/payload/mapping JSON"),
    as_json: bool = typer.Option(False, "--json", help="Print results as JSON"),
) -> None:
    """Run one action with settings.json, payload.json and mapping.json."""
    settings = read_optional_json(input_dir / "settings.json")
    event = read_optional_json(input_dir / "payload.json")
    mapping = read_optional_json(input_dir / "mapping.json")

    try:
        runtime = get_destination(destination)
        results = asyncio.run(runtime.execute_action(action, event=event, mapping=mapping, settings=settings))
    except RelayError as e:
        raise fail(e.message) from e
    except httpx.HTTPError as e:
        raise fail(f"request failed: {e}") from e

    print_results(results, as_json=as_json, title=f"{runtime.name} / {action}")


@app.command("destinations")
def list_destinations() -> None:
    """List bundled destinations, their actions and default subscriptions."""
    table = Table(show_lines=False, pad_edge=False)
    table.add_column("slug")
    table.add_column("name")
    table.add_column("action")
    table.add_column("default subscription", overflow="fold")
    table.add_column("presets", justify="right")

    for slug, definition in sorted(DESTINATIONS.items()):
        first = [slug, definition.name]
        presets = str(len(definition.presets))
        for key, action in sorted(definition.actions.items()):
            table.add_row(*first, key, action.default_subscription or "-", presets)
            # one destination cell per group
            first, presets = ["", ""], ""
    console.print(table)
