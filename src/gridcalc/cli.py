"""Command-line interface for gridcalc."""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Any

import click
import polars as pl

from gridcalc import __version__


@click.group()
@click.version_option(version=__version__, prog_name="gridcalc")
def main() -> None:
    """gridcalc -- spreadsheet recalculation engine.

    Grids are header-less CSV files of raw cell contents; formulas start
    with '='.
    """


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def read_grid(path: Path) -> list[list[str]]:
    """Read a header-less CSV grid, every column as text, empties as ``""``."""
    df = pl.read_csv(
        path,
        has_header=False,
        infer_schema=False,
        truncate_ragged_lines=True,
    )
    return [["" if v is None else v for v in row] for row in df.rows()]


def display_value(value: Any) -> str:
    """Format an evaluated value for output."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _setup(directory: str | None) -> dict[str, Any]:
    from gridcalc.config import configure_logging, load_config

    if directory is None:
        return load_config()
    base = Path(directory)
    try:
        config = load_config(base)
    except ValueError as e:
        raise click.ClickException(str(e))
    configure_logging(base, config)
    return config


def _recalc_file(grid_file: str, directory: str | None):
    from gridcalc.engine import recalc

    config = _setup(directory)
    try:
        grid = read_grid(Path(grid_file))
    except (pl.exceptions.PolarsError, OSError) as e:
        raise click.ClickException(f"Cannot read grid {grid_file}: {e}")
    return recalc(grid, digits=config["round_digits"])


_dir_option = click.option(
    "--dir",
    "directory",
    default=None,
    type=click.Path(file_okay=False),
    help="Directory holding gridcalc.yaml and logs/.",
)


# ---------------------------------------------------------------------------
# Eval
# ---------------------------------------------------------------------------


@main.command("eval")
@click.argument("grid_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@_dir_option
def eval_cmd(grid_file: str, as_json: bool, directory: str | None) -> None:
    """Recalculate GRID_FILE and print the evaluated grid."""
    result = _recalc_file(grid_file, directory)
    if as_json:
        click.echo(json.dumps([list(row) for row in result.values], default=str))
        return
    # Empty cells are written as nulls so they come out as bare empty fields.
    df = pl.DataFrame(
        [[display_value(v) or None for v in row] for row in result.values],
        schema={f"c{i}": pl.Utf8 for i in range(result.cols)},
        orient="row",
    )
    buf = io.StringIO()
    df.write_csv(buf, include_header=False)
    click.echo(buf.getvalue(), nl=False)


@main.command("cell")
@click.argument("grid_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("address")
@_dir_option
def cell_cmd(grid_file: str, address: str, directory: str | None) -> None:
    """Print the evaluated value of ADDRESS in GRID_FILE."""
    from gridcalc.errors import InvalidReference
    from gridcalc.refs import parse_address

    try:
        row, col = parse_address(address)
    except InvalidReference as e:
        raise click.ClickException(str(e))
    result = _recalc_file(grid_file, directory)
    if not (0 <= row < result.rows and 0 <= col < result.cols):
        raise click.ClickException(
            f"{address.upper()} is outside the {result.rows}x{result.cols} grid"
        )
    click.echo(display_value(result.value_at(row, col)))
    message = result.errors.get((row, col))
    if message:
        click.echo(message, err=True)


@main.command("deps")
@click.argument("grid_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@_dir_option
def deps_cmd(grid_file: str, as_json: bool, directory: str | None) -> None:
    """Print the dependency set of every formula cell in GRID_FILE."""
    from gridcalc.refs import make_addr

    result = _recalc_file(grid_file, directory)
    ordered = sorted(result.dependencies.items())
    if as_json:
        listing = {make_addr(*key): [make_addr(*d) for d in sorted(deps)] for key, deps in ordered}
        click.echo(json.dumps(listing, indent=2))
        return
    for key, deps in ordered:
        names = ", ".join(make_addr(*d) for d in sorted(deps)) or "-"
        marker = " (circular)" if key in result.circular else ""
        click.echo(f"{make_addr(*key)}: {names}{marker}")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@main.command("events")
@click.option("--dir", "directory", default=".", type=click.Path(exists=True, file_okay=False))
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]))
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--limit", default=50, show_default=True, type=int)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def events_cmd(
    directory: str,
    level: str | None,
    event_type: str | None,
    limit: int,
    as_json: bool,
) -> None:
    """Show recent logged events, newest first."""
    from gridcalc.logging.sink import EventSink

    sink = EventSink(Path(directory))
    events = sink.read(level=level, event_type=event_type, limit=limit)
    if as_json:
        click.echo(json.dumps(events, indent=2))
        return
    if not events:
        click.echo("No events.")
        return
    for e in events:
        code = f" [{e['error_code']}]" if e.get("error_code") else ""
        click.echo(f"{e.get('ts', '')}  {e.get('level', ''):<7}  {e.get('event_type', '')}{code}  {e.get('message', '')}")
