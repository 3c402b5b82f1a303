"""
apkforge CLI.

Command-line interface for running the Android build pipeline.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .core.config import Config, get_config
from .core.exceptions import ApkForgeError, ConfigurationError
from .core.logging import setup_logging
from .core.types import StageStatus

app = typer.Typer(
    name="apkforge",
    help="Build Android packages from a JSON project descriptor",
    add_completion=False,
)

console = Console()

STATUS_STYLES = {
    StageStatus.COMPLETED: "[green]completed[/green]",
    StageStatus.SKIPPED: "[yellow]skipped[/yellow]",
    StageStatus.FAILED: "[red]failed[/red]",
    StageStatus.PENDING: "[dim]pending[/dim]",
    StageStatus.RUNNING: "[blue]running[/blue]",
}

DescriptorOption = typer.Option(
    None,
    "--config",
    "-c",
    help="JSON project descriptor; environment defaults when omitted",
    exists=True,
    dir_okay=False,
    resolve_path=True,
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__
        console.print(f"apkforge v{__version__}")
        raise typer.Exit()


def load_config(descriptor: Optional[Path], verbose: bool = False) -> Config:
    """Load configuration and set up logging, exiting on invalid input."""
    try:
        config = Config.from_file(descriptor) if descriptor else get_config()
    except ApkForgeError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2) from e
    if verbose:
        config = config.model_copy(update={"log_level": "DEBUG"})
    setup_logging(config)
    return config


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """apkforge: Android build pipeline."""
    pass


@app.command()
def build(
    descriptor: Optional[Path] = DescriptorOption,
    until: Optional[str] = typer.Option(
        None,
        "--until",
        "-u",
        help="Stop after this phase (generate-sources, compile, process-classes, prepare-package, package)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable verbose logging",
    ),
) -> None:
    """Run the build pipeline."""
    from .pipeline import BuildPipeline

    config = load_config(descriptor, verbose)
    console.print(Panel.fit(
        f"[bold blue]apkforge[/bold blue]\n{config.project.coordinate}",
        border_style="blue",
    ))

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Building...", total=None)
            run = BuildPipeline(config).run(until=until)
            progress.update(task, completed=True)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2) from e
    except ApkForgeError as e:
        console.print("\n[bold red]✗ Build failed![/bold red]")
        console.print(f"Error: {e}")
        raise typer.Exit(1) from e

    table = Table(title=f"Build {run.run_id}")
    table.add_column("Stage", style="cyan")
    table.add_column("Phase")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Note")
    for stage in run.stages:
        table.add_row(
            stage.stage_name,
            stage.phase,
            STATUS_STYLES[stage.status],
            f"{stage.duration_seconds:.1f}s",
            stage.skip_reason or "",
        )
    console.print(table)

    console.print("\n[bold green]✓ Build completed[/bold green]")
    if run.package_path:
        console.print(f"[bold]Package:[/bold] {run.package_path}")


@app.command()
def unpack(
    descriptor: Optional[Path] = DescriptorOption,
) -> None:
    """Stage library and native dependencies without building."""
    from .pipeline import BuildContext

    config = load_config(descriptor)
    context = BuildContext(config)
    try:
        staged = [*context.unpacked_libraries(), *context.unpacked_natives()]
    except ApkForgeError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    table = Table(title="Staged Dependencies")
    table.add_column("Artifact", style="cyan")
    table.add_column("Kind")
    table.add_column("Staging")
    table.add_column("Native", justify="right")
    for artifact in staged:
        table.add_row(
            artifact.id,
            artifact.kind.value,
            str(artifact.root),
            ", ".join(sorted(artifact.native_libs)) or "-",
        )
    console.print(table)


@app.command()
def conflicts(
    sources: list[Path] = typer.Argument(
        ...,
        help="Directories or jars in precedence order",
        exists=True,
        resolve_path=True,
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Exit with status 1 when any conflict is found",
    ),
) -> None:
    """Report relative paths contributed by more than one source."""
    from .conflicts import ConflictDetector, ConflictSource

    setup_logging(get_config())
    detector = ConflictDetector()
    try:
        found = detector.find_conflicts([ConflictSource(str(s), s) for s in sources])
    except ApkForgeError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    if not found:
        console.print("[green]No conflicts found[/green]")
        return

    table = Table(title=f"{len(found)} Conflicting Paths")
    table.add_column("Path", style="cyan")
    table.add_column("Kept")
    table.add_column("Shadowed")
    for path, identities in found.items():
        table.add_row(path, identities[0], "\n".join(identities[1:]))
    console.print(table)

    if strict:
        raise typer.Exit(1)


@app.command("config")
def show_config(
    descriptor: Optional[Path] = DescriptorOption,
) -> None:
    """Show the resolved configuration."""
    config = load_config(descriptor)
    console.print_json(config.model_dump_json())


@app.command("version-code")
def version_code(
    version_name: str = typer.Argument(..., help="Version name, e.g. 1.2.3"),
    digits: str = typer.Option("4,3,3", "--digits", "-d", help="Digits per version element"),
    pattern: Optional[str] = typer.Option(
        None, "--pattern", "-p", help="Regex whose groups are the version elements"
    ),
) -> None:
    """Compute an Android version code from a version name."""
    from .manifest import VersionGenerator

    try:
        code = VersionGenerator(digits, pattern).generate(version_name)
    except ApkForgeError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    console.print(str(code))


if __name__ == "__main__":
    app()
