"""bundleforge CLI — Typer-based command-line interface.

Provides the ``bundleforge`` command with subcommands for building deployment
artifacts and inspecting staged trees.

All output uses Rich for formatted terminal display.
"""
