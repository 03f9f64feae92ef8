"""``bundleforge build`` — run the full build pipeline for a project.

Runs the runtime check, staging, vendoring, size governance, layout rewrite,
checksums and packaging, then prints the stage states and artifacts.
Exits non-zero when any stage fails.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import typer
from botocore.exceptions import BotoCoreError
from rich.console import Console

from bundleforge.config import BuildSettings
from bundleforge.core.orchestrator import Orchestrator
from bundleforge.models.stages import DEFAULT_STAGE_DEFINITIONS
from bundleforge.monitor.renderer import BuildReportRenderer
from bundleforge.stages import StageExecutionError

console = Console()


def build_cmd(
    project_root: Path = typer.Argument(
        Path("."),
        help="Project directory to build.",
    ),
    build_root: Optional[Path] = typer.Option(
        None,
        "--build-root",
        "-b",
        help="Directory the build area is created under.",
    ),
    lazy_load: Optional[bool] = typer.Option(
        None,
        "--lazy-load/--no-lazy-load",
        help="Load dependencies from a separate layer at cold start.",
    ),
    skip_assets: bool = typer.Option(
        False,
        "--skip-assets",
        help="Do not compile front-end assets.",
    ),
    bucket: Optional[str] = typer.Option(
        None,
        "--bucket",
        help="S3 bucket used for the artifact cache check and upload.",
    ),
    upload: Optional[bool] = typer.Option(
        None,
        "--upload/--no-upload",
        help="Upload newly created artifacts to the store.",
    ),
) -> None:
    """Build deployment artifacts for PROJECT_ROOT."""
    overrides: dict[str, Any] = {"project_root": project_root}
    if build_root is not None:
        overrides["build_root"] = build_root
    if lazy_load is not None:
        overrides["lazy_load"] = lazy_load
    if skip_assets:
        overrides["skip_assets"] = True
    if bucket is not None:
        overrides["s3_bucket"] = bucket
    if upload is not None:
        overrides["upload"] = upload

    try:
        orchestrator = Orchestrator(settings=BuildSettings(**overrides))
    except (ValueError, BotoCoreError) as exc:
        console.print(f"[bold red]Invalid build settings:[/bold red] {exc}")
        raise typer.Exit(code=1)

    renderer = BuildReportRenderer(console=console)
    try:
        result = orchestrator.build()
    except StageExecutionError as exc:
        console.print()
        console.print(renderer.stage_table(DEFAULT_STAGE_DEFINITIONS, orchestrator.get_states()))
        console.print(f"[bold red]Build failed in {exc.stage_id}:[/bold red] {exc.cause}")
        if getattr(exc.cause, "retryable", False):
            console.print("[yellow]This failure is retryable; run the build again.[/yellow]")
        raise typer.Exit(code=1)

    console.print()
    renderer.print_build(
        orchestrator.run_id,
        DEFAULT_STAGE_DEFINITIONS,
        result.states,
        result.artifacts,
        lazy_load=result.config.lazy_load_enabled,
        lazy_load_forced=result.config.lazy_load_forced,
    )
    console.print(f"[dim]Manifest: {result.manifest_path}[/dim]")
