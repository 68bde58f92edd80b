"""
cs2replay CLI - Command Line Interface

Provides commands for:
- Parsing a demo into a match recording (JSON)
- Summarizing an exported match
- Writing a default configuration file
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from cs2replay import __version__
from cs2replay.core.config import (
    Cs2ReplayConfig,
    get_config,
    load_config,
    save_config,
    set_config,
    setup_logging,
)
from cs2replay.errors import DemoParseError
from cs2replay.export import load_match_json, write_match
from cs2replay.pipeline import parse_demo

app = typer.Typer(
    name="cs2replay",
    help="Turn CS2 demos into round-by-round 2D replay recordings",
    add_completion=False,
)
console = Console()
logger = logging.getLogger(__name__)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]cs2replay[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable verbose output"),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (YAML, TOML or JSON)",
        exists=True,
        dir_okay=False,
    ),
) -> None:
    """cs2replay - CS2 demo to replay JSON"""
    config = load_config(config_file)
    set_config(config)
    setup_logging(config.logging)
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@app.command()
def parse(
    demo_path: Path = typer.Argument(
        ...,
        help="Path to the .dem file to parse",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o", help="Directory for the match JSON (default from config)"
    ),
    match_id: Optional[str] = typer.Option(None, "--id", help="Match id (random if omitted)"),
    pretty: bool = typer.Option(False, "--pretty", help="Indent the JSON output"),
    compress: bool = typer.Option(False, "--compress", help="Write gzip-compressed JSON"),
) -> None:
    """
    Parse a CS2 demo and write its match recording.

    The output contains every round with player snapshots (5 per second),
    kills, and grenades with compressed trajectories.
    """
    config = get_config()
    console.print("\n[bold blue]cs2replay[/bold blue] - Parsing demo...\n")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(f"Parsing {demo_path.name}...", total=1.0)
        try:
            match = parse_demo(
                demo_path,
                match_id,
                on_progress=lambda p: progress.update(task, completed=p),
                config=config,
            )
        except DemoParseError as e:
            logger.debug("Demo parse failed", exc_info=True)
            console.print(f"[red]Error parsing demo:[/red] {e}")
            raise typer.Exit(1)
        progress.update(task, completed=1.0, description="Demo parsed successfully!")

    path = write_match(
        match,
        output_dir or config.export.output_dir,
        pretty=pretty or config.export.pretty,
        compress=compress or config.export.compress,
    )

    _print_summary(match.to_dict())
    console.print(f"\n[green]Match written to[/green] {path}")


@app.command()
def info(
    match_file: Path = typer.Argument(
        ..., help="Match JSON (or .json.gz) written by 'parse'", exists=True, dir_okay=False
    ),
) -> None:
    """Summarize an exported match recording."""
    try:
        data = load_match_json(match_file)
    except (OSError, ValueError) as e:
        console.print(f"[red]Could not read match file:[/red] {e}")
        raise typer.Exit(1)
    _print_summary(data)


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(Path("cs2replay.yaml"), help="Where to write the config (.yaml or .json)"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
) -> None:
    """Write a configuration file with the default settings."""
    if path.exists() and not force:
        console.print(f"[yellow]{path} already exists[/yellow] (use --force to overwrite)")
        raise typer.Exit(1)
    try:
        save_config(Cs2ReplayConfig(), path)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Wrote default config to[/green] {path}")


def _print_summary(data: dict) -> None:
    rounds = data.get("rounds", [])
    teams = data.get("teams", {})

    info_table = Table(title="Match", show_header=False)
    info_table.add_column("Property", style="cyan")
    info_table.add_column("Value", style="green")
    info_table.add_row("Id", str(data.get("id", "")))
    info_table.add_row("Map", data.get("map") or "unknown")
    info_table.add_row("Tick Rate", str(data.get("tickRate", 0)))
    info_table.add_row("Duration", f"{data.get('duration', 0):.1f} seconds")
    info_table.add_row("Rounds", str(len(rounds)))
    for side in ("ct", "t"):
        players = teams.get(side, {}).get("players", [])
        info_table.add_row(f"{side.upper()} Players", ", ".join(p.get("name", "") for p in players) or "-")
    console.print(info_table)

    if not rounds:
        return

    round_table = Table(title="Rounds")
    round_table.add_column("#", justify="right")
    round_table.add_column("Winner")
    round_table.add_column("Reason")
    round_table.add_column("Score (CT-T)")
    round_table.add_column("Snapshots", justify="right")
    round_table.add_column("Kills", justify="right")
    round_table.add_column("Grenades", justify="right")
    for r in rounds:
        round_table.add_row(
            str(r.get("number")),
            (r.get("winner") or "-").upper(),
            r.get("winReason") or "-",
            f"{r.get('endCTScore', 0)}-{r.get('endTScore', 0)}",
            str(len(r.get("snapshots", []))),
            str(len(r.get("kills", []))),
            str(len(r.get("grenades", []))),
        )
    console.print(round_table)


def main() -> None:
    """Entry point for the console script."""
    app()


if __name__ == "__main__":
    main()
