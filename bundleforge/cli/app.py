"""Main Typer application — imports and registers all CLI commands.

Entry point: ``bundleforge`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from bundleforge.cli.commands.build import build_cmd
from bundleforge.cli.commands.inspect import checksum_cmd, size_cmd
from bundleforge.config import settings

app = typer.Typer(
    name="bundleforge",
    help="bundleforge: build size-constrained, content-addressed deployment artifacts.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


def configure_logging(level: str) -> None:
    """Route log records through Rich at *level*.

    A no-op when the root logger already has handlers.
    """
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=False, show_path=False)],
    )


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        settings.log_level, "--log-level", help="Logging level (DEBUG, INFO, ...)."
    ),
) -> None:
    """bundleforge: build size-constrained, content-addressed deployment artifacts."""
    configure_logging(log_level)


# Register subcommands
app.command(name="build", help="Stage, vendor, checksum and package a project.")(build_cmd)
app.command(name="checksum", help="Print the content checksum of a directory.")(checksum_cmd)
app.command(name="size", help="Compare a directory's size with the platform limit.")(size_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
