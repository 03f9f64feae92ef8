"""``bundleforge checksum`` and ``bundleforge size`` — inspect a staged tree."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from bundleforge.core.content_addressor import ChecksumError, tree_digest
from bundleforge.core.size_governor import MIB, PLATFORM_CODE_SIZE_LIMIT, dir_size

console = Console()


def checksum_cmd(
    directory: Path = typer.Argument(..., help="Directory to checksum."),
) -> None:
    """Print the content checksum bundleforge would use for DIRECTORY."""
    try:
        digest = tree_digest(directory)
    except ChecksumError as exc:
        console.print(f"[bold red]Checksum failed:[/bold red] {exc}")
        raise typer.Exit(code=1)
    console.print(digest)


def size_cmd(
    directory: Path = typer.Argument(..., help="Directory to measure."),
) -> None:
    """Show the size of DIRECTORY against the platform code size limit."""
    if not directory.is_dir():
        console.print(f"[bold red]Not a directory:[/bold red] {directory}")
        raise typer.Exit(code=1)

    try:
        size = dir_size(directory)
    except OSError as exc:
        console.print(f"[bold red]Cannot measure {directory}:[/bold red] {exc}")
        raise typer.Exit(code=1)
    limit_mb = PLATFORM_CODE_SIZE_LIMIT // MIB
    if size > PLATFORM_CODE_SIZE_LIMIT:
        verdict = f"[yellow]over the {limit_mb}MB limit; lazy loading would be enabled[/yellow]"
    else:
        verdict = f"[green]within the {limit_mb}MB limit[/green]"
    console.print(f"[bold]{directory}[/bold]")
    console.print(f"{size / MIB:.1f}MB, {verdict}")
