"""Rich terminal renderer for build reports.

Color scheme
------------
- green     : PASSED
- red       : FAILED
- yellow    : RUNNING
- dim       : NOT_STARTED
- bold red  : BLOCKED
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from bundleforge.core.size_governor import MIB
from bundleforge.models.artifacts import ArtifactRef
from bundleforge.models.stages import StageDefinition, StageState

# ---------------------------------------------------------------------------
# State -> Rich style mapping
# ---------------------------------------------------------------------------

_STATE_STYLES: dict[StageState, str] = {
    StageState.PASSED: "bold green",
    StageState.FAILED: "bold red",
    StageState.RUNNING: "bold yellow",
    StageState.NOT_STARTED: "dim",
    StageState.BLOCKED: "bold red",
}

_STATE_ICONS: dict[StageState, str] = {
    StageState.PASSED: "[green]PASSED[/green]",
    StageState.FAILED: "[bold red]FAILED[/bold red]",
    StageState.RUNNING: "[yellow]RUNNING[/yellow]",
    StageState.NOT_STARTED: "[dim]NOT STARTED[/dim]",
    StageState.BLOCKED: "[bold red]BLOCKED[/bold red]",
}


class BuildReportRenderer:
    """Renders stage states and artifact references as Rich output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def stage_table(
        self,
        definitions: list[StageDefinition],
        states: dict[str, StageState],
        details: dict[str, str] | None = None,
    ) -> Table:
        """Build a Rich Table of stage states in definition order."""
        details = details or {}
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", width=3, justify="right")
        table.add_column("Stage", min_width=22)
        table.add_column("State", min_width=14, justify="center")
        table.add_column("Details", min_width=20)

        for definition in sorted(definitions, key=lambda d: d.ordinal):
            state = states.get(definition.stage_id, StageState.NOT_STARTED)
            style = _STATE_STYLES.get(state, "")
            table.add_row(
                str(definition.ordinal),
                f"[{style}]{definition.display_name}[/{style}]",
                _STATE_ICONS.get(state, state.value),
                details.get(definition.stage_id, "[dim]-[/dim]"),
            )
        return table

    def artifact_table(self, artifacts: list[ArtifactRef]) -> Table:
        """Build a Rich Table of packaged artifacts."""
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Folder", style="cyan")
        table.add_column("Artifact")
        table.add_column("Size", justify="right")
        table.add_column("Status", justify="center")

        for ref in artifacts:
            if ref.reused:
                status = "[dim]reused[/dim]"
                size = "[dim]-[/dim]"
            else:
                status = "[green]uploaded[/green]" if ref.uploaded else "[yellow]created[/yellow]"
                size = f"{ref.size_bytes / MIB:.1f}MB"
            table.add_row(ref.folder, ref.name, size, status)
        return table

    def render_build(
        self,
        run_id: str,
        definitions: list[StageDefinition],
        states: dict[str, StageState],
        artifacts: list[ArtifactRef],
        *,
        lazy_load: bool,
        lazy_load_forced: bool = False,
    ) -> Panel:
        """Render a full build report as a Panel."""
        if lazy_load_forced:
            lazy = "[yellow]on (forced by size)[/yellow]"
        else:
            lazy = "[green]on[/green]" if lazy_load else "[dim]off[/dim]"
        summary = "  |  ".join([
            f"[bold]Run:[/bold] {run_id}",
            f"[bold]Lazy load:[/bold] {lazy}",
            f"[bold]Artifacts:[/bold] {len(artifacts)}",
        ])
        content = Group(
            self.stage_table(definitions, states),
            Text(""),
            self.artifact_table(artifacts),
            Text(""),
            Text.from_markup(summary),
        )
        return Panel(
            content,
            title="[bold]bundleforge build[/bold]",
            border_style="blue",
            padding=(1, 2),
        )

    def print_build(self, *args, **kwargs) -> None:
        """Print a build report to the console."""
        self.console.print(self.render_build(*args, **kwargs))
