import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from decouple import config as env_config
from rich.console import Console

from . import __version__
from .config import default_output_directory, output_file_name
from .diagnostics import get_diagnostics
from .errors import GlassTranspileError
from .folding import get_folding_ranges
from .transpile import (RUNTIME_MODULE, construct_glass_output_file,
                        find_glass_files, transpile_glass_path)

app = typer.Typer(help="glassc: compile glass prompt documents")

logger = logging.getLogger(__name__)


def setup_logging(verbosity: int):
    """Set up logging based on verbosity level.

    Levels:
        0 (no -v): WARNING only
        1 (-v): INFO logs
        2+ (-vv): DEBUG logs
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Increase log output"),
):
    """glassc: compile glass prompt documents"""
    setup_logging(verbose)


def _collect_files(paths: List[Path]) -> List[Path]:
    files = []
    for path in paths:
        if path.is_dir():
            files.extend(find_glass_files(path))
        else:
            files.append(path)
    return files


@app.command()
def transpile(
    paths: List[Path] = typer.Argument(..., help=".glass files or directories"),
    output: Optional[Path] = typer.Option(
        None, "-o", "--output", help="Output directory (default: GLASS_OUTPUT_DIR)"
    ),
    language: str = typer.Option(
        env_config("GLASS_LANGUAGE", default="typescript"),
        "--language",
        "-l",
        help="typescript or javascript",
    ),
    runtime_module: Optional[str] = typer.Option(
        RUNTIME_MODULE, help="Module to import interpolateGlass/interpolateGlassChat from"
    ),
    stdout: bool = typer.Option(False, "--stdout", help="Print instead of writing a file"),
    deduplicate: bool = typer.Option(
        False, "--deduplicate", help="Share one placeholder between identical interpolations"
    ),
):
    """Compile glass documents into a single generated module.

    Examples:
        glassc transpile prompts/
        glassc transpile prompts/foo.glass --stdout
    """
    console = Console(stderr=True)

    if language not in ("typescript", "javascript"):
        console.print(f"[red]Error: unknown language {language}[/red]")
        raise typer.Exit(1)

    files = _collect_files(paths)
    if not files:
        console.print("[yellow]No .glass files found[/yellow]")
        raise typer.Exit(1)

    functions = []
    for path in files:
        if not path.exists():
            console.print(f"[red]Error: {path} not found[/red]")
            raise typer.Exit(1)
        try:
            function = transpile_glass_path(path, language=language, deduplicate=deduplicate)
        except GlassTranspileError as e:
            console.print(f"[red]✗[/red] {e}")
            raise typer.Exit(1)
        for issue in function.errors:
            console.print(f"[yellow]warning[/yellow] {path.name}: {issue.message}")
        functions.append(function)

    content = construct_glass_output_file(functions, runtime_module)
    if stdout:
        print(content, end="")
        return

    output_dir = output or default_output_directory()
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / output_file_name(language)
    output_path.write_text(content, encoding="utf-8")
    console.print(
        f"[green]✓[/green] Wrote {len(functions)} functions to [cyan]{output_path}[/cyan]"
    )


@app.command()
def check(
    paths: List[Path] = typer.Argument(..., help=".glass files or directories"),
):
    """Report unmatched and unsupported tags and other structural problems."""
    console = Console()
    failed = False

    for path in _collect_files(paths):
        text = path.read_text(encoding="utf-8")
        diagnostics = get_diagnostics(text)
        if not diagnostics:
            console.print(f"[green]✓[/green] {path}")
            continue
        for diagnostic in diagnostics:
            position = diagnostic.range.start
            colour = "red" if diagnostic.severity == "error" else "yellow"
            failed = failed or diagnostic.severity == "error"
            console.print(
                f"{path}:{position.line + 1}:{position.character + 1}: "
                f"[{colour}]{diagnostic.severity}[/{colour}] {diagnostic.message}"
            )

    if failed:
        raise typer.Exit(1)


@app.command()
def fold(
    path: Path = typer.Argument(..., help="Path to a .glass file"),
):
    """Print folding ranges as JSON."""
    text = path.read_text(encoding="utf-8")
    ranges = [r.model_dump() for r in get_folding_ranges(text)]
    typer.echo(json.dumps(ranges, indent=2))


if __name__ == "__main__":
    app()
