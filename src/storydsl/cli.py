"""StoryDSL CLI - typer application entry point."""

from __future__ import annotations

import atexit
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from storydsl.config import DEFAULT_CONFIG_FILE, ConfigError, EditorConfig, load_editor_config
from storydsl.observability import (
    bind_command,
    close_file_logging,
    configure_logging,
    get_logger,
)

if TYPE_CHECKING:
    from storydsl.dsl.diff import DslDiff
    from storydsl.dsl.sync import ApplyResult
    from storydsl.models.document import ParseResult

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="storydsl",
    help="StoryDSL: edit branching story graphs as plain text.",
    no_args_is_help=True,
)
console = Console()

# Global state for flags (set by callback, used by commands)
_config_path: Path | None = None


@app.callback()
def main(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_dir: Annotated[
        Path | None,
        typer.Option(
            "--log-dir",
            help="Append JSON log lines to {log_dir}/storydsl.jsonl.",
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help=f"Editor config file (default: ./{DEFAULT_CONFIG_FILE} if present).",
            envvar="STORYDSL_CONFIG",
        ),
    ] = None,
) -> None:
    """StoryDSL: edit branching story graphs as plain text."""
    global _config_path
    _config_path = config

    configure_logging(verbosity=verbose, log_dir=log_dir)
    if log_dir is not None:
        atexit.register(close_file_logging)
    bind_command(ctx.invoked_subcommand)


def _load_config() -> EditorConfig:
    """Load the editor config, exiting with an error message on failure."""
    path = _config_path
    if path is None and Path(DEFAULT_CONFIG_FILE).exists():
        path = Path(DEFAULT_CONFIG_FILE)
    try:
        return load_editor_config(path)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _read_text(path: Path) -> str:
    if not path.exists():
        console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8")


def _print_diagnostics(result: ParseResult) -> None:
    """Render parse errors and warnings as a table."""
    if not result.errors and not result.warnings:
        return

    table = Table(title="Diagnostics")
    table.add_column("Line", justify="right", style="dim")
    table.add_column("Severity", style="bold")
    table.add_column("Code", style="cyan")
    table.add_column("Message")

    for error in result.errors:
        message = error.message
        if error.suggestion:
            message += f" [dim]({error.suggestion})[/dim]"
        table.add_row(str(error.line), "[red]error[/red]", str(error.code), message)
    for warning in result.warnings:
        table.add_row(str(warning.line), "[yellow]warning[/yellow]", str(warning.code), warning.message)

    console.print(table)


def _print_diff(diff: DslDiff) -> None:
    if diff.is_empty:
        console.print("[dim]No changes.[/dim]")
        return
    for card in diff.added_cards:
        console.print(f"[green]+[/green] {card.id}: {card.title}")
    for card in diff.removed_cards:
        console.print(f"[red]-[/red] {card.id}: {card.title}")
    for change in diff.modified_cards:
        fields = ", ".join(sorted(change.changes))
        console.print(f"[yellow]~[/yellow] {change.id} ({fields})")
    if diff.start_card_changed:
        console.print(f"[cyan]Start card:[/cyan] {diff.new_start_card_id or '-'}")


def _print_plan(result: ApplyResult) -> None:
    table = Table(title="Apply Plan")
    table.add_column("Entity", style="cyan")
    table.add_column("Create", justify="right", style="green")
    table.add_column("Update", justify="right", style="yellow")
    table.add_column("Delete", justify="right", style="red")
    table.add_row(
        "cards", str(len(result.created)), str(len(result.updated)), str(len(result.deleted))
    )
    table.add_row(
        "choices",
        str(len(result.choices_created)),
        str(len(result.choices_updated)),
        str(len(result.choices_deleted)),
    )
    console.print(table)
    for error in result.errors:
        console.print(f"[red]✗[/red] {error}")


@app.command()
def version() -> None:
    """Show version information."""
    from storydsl import __version__

    console.print(f"StoryDSL v{__version__}")


@app.command()
def init(
    path: Annotated[
        Path,
        typer.Argument(help="Where to write the config file."),
    ] = Path(DEFAULT_CONFIG_FILE),
) -> None:
    """Write a config file with the default settings."""
    from storydsl.config import write_default_config

    if path.exists():
        console.print(f"[red]Error:[/red] '{path}' already exists")
        raise typer.Exit(1)
    write_default_config(path)
    console.print(f"[green]✓[/green] Created config: [bold]{path}[/bold]")


@app.command()
def check(
    file: Annotated[Path, typer.Argument(help="DSL file to check.")],
) -> None:
    """Parse a DSL file and report errors and warnings."""
    from storydsl.dsl.parser import parse_story_dsl

    log = get_logger(__name__)
    config = _load_config()
    result = parse_story_dsl(_read_text(file), config.parse)
    log.info("dsl_checked", file=str(file), success=result.success)

    _print_diagnostics(result)
    cards = len(result.document.cards)
    if result.success:
        console.print(
            f"[green]✓[/green] {cards} cards, {len(result.warnings)} warnings, no errors"
        )
    else:
        console.print(f"[red]✗[/red] {len(result.errors)} errors, {len(result.warnings)} warnings")
        raise typer.Exit(1)


@app.command()
def export(
    snapshot: Annotated[Path, typer.Argument(help="Graph snapshot JSON file.")],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write DSL here instead of stdout."),
    ] = None,
    image_prompts: Annotated[
        bool | None,
        typer.Option("--image-prompts/--no-image-prompts", help="Include image attributes."),
    ] = None,
    debug: Annotated[
        bool | None,
        typer.Option("--debug/--no-debug", help="Include card UUID and order comments."),
    ] = None,
    metadata: Annotated[
        bool | None,
        typer.Option("--metadata/--no-metadata", help="Include the story header."),
    ] = None,
) -> None:
    """Serialize a graph snapshot to DSL text."""
    from dataclasses import replace

    from storydsl.dsl.serializer import serialize_story_to_dsl
    from storydsl.snapshot import SnapshotError, load_snapshot

    config = _load_config()
    options = config.serialize
    if image_prompts is not None:
        options = replace(options, include_image_prompts=image_prompts)
    if debug is not None:
        options = replace(options, include_debug_info=debug)
    if metadata is not None:
        options = replace(options, include_metadata=metadata)

    try:
        graph = load_snapshot(snapshot)
    except SnapshotError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    serialized = serialize_story_to_dsl(graph.stack, graph.cards, graph.choices, options)
    if output is None:
        typer.echo(serialized.text, nl=False)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(serialized.text, encoding="utf-8")
    console.print(f"[green]✓[/green] Wrote {len(graph.cards)} cards to [bold]{output}[/bold]")


@app.command()
def diff(
    old: Annotated[Path, typer.Argument(help="Baseline DSL file.")],
    new: Annotated[Path, typer.Argument(help="Edited DSL file.")],
) -> None:
    """Show card-level differences between two DSL files."""
    from storydsl.dsl.diff import compute_dsl_diff
    from storydsl.dsl.parser import parse_story_dsl

    config = _load_config()
    old_doc = parse_story_dsl(_read_text(old), config.parse).document
    new_doc = parse_story_dsl(_read_text(new), config.parse).document
    _print_diff(compute_dsl_diff(old_doc, new_doc))


@app.command()
def apply(
    snapshot: Annotated[Path, typer.Argument(help="Graph snapshot JSON file.")],
    file: Annotated[Path, typer.Argument(help="Edited DSL file.")],
    write: Annotated[
        Path | None,
        typer.Option("--write", "-w", help="Write the resulting graph snapshot here."),
    ] = None,
) -> None:
    """Plan the graph changes needed to match a DSL file.

    The id mapping is rebuilt from the snapshot, so the DSL file should
    come from ``storydsl export`` of the same snapshot.
    """
    from storydsl.dsl.sync import SyncBridge
    from storydsl.snapshot import (
        SnapshotError,
        load_snapshot,
        save_snapshot,
        snapshot_after_apply,
    )

    config = _load_config()
    try:
        graph = load_snapshot(snapshot)
    except SnapshotError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    bridge = SyncBridge(parse_options=config.parse, serialize_options=config.serialize)
    bridge.load(graph.stack, graph.cards, graph.choices)
    state = bridge.edit_text(_read_text(file))

    if not state.can_apply:
        console.print("[red]Error:[/red] DSL has errors; nothing applied.")
        for error in state.parse_errors:
            console.print(f"  line {error.line}: {error.message}")
        raise typer.Exit(1)

    result = bridge.apply(graph.stack, graph.cards, graph.choices)
    _print_plan(result)

    if write is not None:
        save_snapshot(snapshot_after_apply(graph, result), write)
        console.print(f"[green]✓[/green] Wrote snapshot: [bold]{write}[/bold]")

    if not result.success:
        raise typer.Exit(1)
