"""Rich status renderer for the supervisor loop.

Color scheme
------------
- green     : RUNNING, successful builds
- red       : FAILED, failed builds and start errors
- yellow    : BUILDING, STARTING, stale results
- dim       : IDLE, TERMINATED
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from hotforge.models.states import LoopState, StateTransition

if TYPE_CHECKING:
    from hotforge.core.supervisor import ManagedProcess
    from hotforge.models.builds import BuildJob, BuildResult


_STATE_STYLES: dict[LoopState, str] = {
    LoopState.IDLE: "dim",
    LoopState.BUILDING: "bold yellow",
    LoopState.STARTING: "yellow",
    LoopState.RUNNING: "bold green",
    LoopState.FAILED: "bold red",
    LoopState.TERMINATED: "dim",
}

MAX_LISTED_PATHS = 5


def format_paths(paths: Iterable[Path], root: Path | None = None) -> str:
    """Short, sorted listing of trigger paths, relative to *root* when possible."""
    shown: list[str] = []
    for path in sorted(paths):
        if root is not None:
            try:
                path = path.relative_to(root)
            except ValueError:
                pass
        shown.append(path.as_posix())
    if not shown:
        return "startup"
    extra = len(shown) - MAX_LISTED_PATHS
    listing = ", ".join(shown[:MAX_LISTED_PATHS])
    return f"{listing} (+{extra} more)" if extra > 0 else listing


class StatusRenderer:
    """Writes the user-facing status stream.

    Parameters
    ----------
    console:
        Rich Console instance.  A new stdout console is created if not provided.
    root:
        Project root, used to shorten paths.
    clear_screen:
        Clear the console when a build starts.
    """

    def __init__(
        self,
        console: Console | None = None,
        *,
        root: Path | None = None,
        clear_screen: bool = False,
    ) -> None:
        self.console = console or Console()
        self.root = root
        self.clear_screen = clear_screen

    def _stamp(self) -> str:
        return f"[dim]{datetime.now().strftime('%H:%M:%S')}[/dim]"

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def transition(self, record: StateTransition) -> None:
        style = _STATE_STYLES.get(record.to_state, "")
        line = Text.from_markup(
            f"{self._stamp()} {record.from_state.value} -> "
            f"[{style}]{record.to_state.value}[/{style}]"
        )
        if record.reason:
            line.append(f"  {record.reason}", style="dim")
        self.console.print(line)

    def banner(self, root: Path, build: str, run: str) -> None:
        self.console.print(
            Panel(
                "\n".join([
                    f"[bold]Root:[/bold]   {root}",
                    f"[bold]Build:[/bold]  {build}",
                    f"[bold]Run:[/bold]    {run or '[dim]artifact from build output[/dim]'}",
                    "",
                    "[dim]Watching for changes. Press Ctrl+C to exit.[/dim]",
                ]),
                title="[bold]hotforge[/bold]",
                border_style="blue",
                padding=(0, 2),
            )
        )

    # ------------------------------------------------------------------
    # Builds
    # ------------------------------------------------------------------

    def build_started(self, job: BuildJob) -> None:
        if self.clear_screen:
            self.console.clear()
        self.console.print(
            f"{self._stamp()} [yellow]Build #{job.seq}[/yellow] "
            f"[dim]({format_paths(job.trigger_paths, self.root)})[/dim]"
        )

    def build_finished(self, result: BuildResult) -> None:
        if result.succeeded:
            self.console.print(
                f"{self._stamp()} [green]Build #{result.seq} succeeded[/green] "
                f"[dim]in {result.duration_s:.2f}s[/dim]"
            )
            return

        exit_desc = (
            f"exit {result.exit_code}" if result.exit_code is not None else result.status.value
        )
        self.console.print(
            Panel(
                Text(result.diagnostics.rstrip("\n") or "(no diagnostics)"),
                title=f"[bold red]Build #{result.seq} {result.status.value}[/bold red] ({exit_desc})",
                subtitle=f"triggered by {format_paths(result.trigger_paths, self.root)}",
                border_style="red",
                padding=(0, 1),
            )
        )

    def build_discarded(self, result: BuildResult, latest_seq: int) -> None:
        self.console.print(
            f"{self._stamp()} [yellow]Build #{result.seq} {result.status.value}; "
            f"result discarded (superseded by #{latest_seq})[/yellow]"
        )

    # ------------------------------------------------------------------
    # Service
    # ------------------------------------------------------------------

    def process_started(self, managed: ManagedProcess) -> None:
        self.console.print(
            f"{self._stamp()} [green]Started[/green] {managed.artifact.display} "
            f"[dim](pid {managed.pid})[/dim]"
        )

    def process_stopped(self, pid: int, returncode: int | None) -> None:
        self.console.print(
            f"{self._stamp()} [dim]Stopped pid {pid} (exit {returncode})[/dim]"
        )

    def process_exited(self, pid: int, returncode: int) -> None:
        style = "dim" if returncode == 0 else "bold red"
        self.console.print(
            f"{self._stamp()} [{style}]Service pid {pid} exited with code {returncode}[/{style}]"
        )

    def start_failed(self, message: str) -> None:
        self.console.print(f"{self._stamp()} [bold red]Start failed:[/bold red] ", Text(message))

    # ------------------------------------------------------------------
    # Errors and shutdown
    # ------------------------------------------------------------------

    def watch_failed(self, message: str) -> None:
        self.console.print(
            Panel(
                Text(message),
                title="[bold red]Watcher stopped[/bold red]",
                border_style="red",
                padding=(0, 1),
            )
        )

    def shutdown(self, exit_code: int, builds: int) -> None:
        self.console.print(
            f"{self._stamp()} [bold]hotforge exiting[/bold] "
            f"[dim](status {exit_code}, {builds} build(s))[/dim]"
        )
