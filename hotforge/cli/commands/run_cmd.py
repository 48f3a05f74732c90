"""``hotforge run`` — the continuous watch-build-run loop.

Builds once at startup (unless disabled), then rebuilds after every
coalesced burst of edits and restarts the service on success.  Exits with
0 after a clean shutdown, 130 if a build or start was interrupted, and 2
if the watched root became inaccessible.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from hotforge.cli.commands._settings import settings_or_exit
from hotforge.config import ChangeStrategy
from hotforge.core.orchestrator import Orchestrator
from hotforge.log import configure_logging
from hotforge.monitor.renderer import StatusRenderer

console = Console()


def run_cmd(
    root: Optional[Path] = typer.Option(
        None, "--root", "-C", help="Project root to watch and build in."
    ),
    build: Optional[str] = typer.Option(
        None, "--build", "-b", help="Build command, e.g. 'cargo build'."
    ),
    run: Optional[str] = typer.Option(
        None, "--run", "-r", help="Service command; '' reads the artifact from build output."
    ),
    ignore: Optional[list[str]] = typer.Option(
        None, "--ignore", "-i", help="Extra glob pattern to ignore (repeatable)."
    ),
    debounce_ms: Optional[int] = typer.Option(
        None, "--debounce-ms", help="Quiet window before a rebuild, in milliseconds."
    ),
    stop_timeout: Optional[float] = typer.Option(
        None, "--stop-timeout", help="Seconds to wait after SIGTERM before SIGKILL."
    ),
    poll: Optional[bool] = typer.Option(
        None, "--poll/--no-poll", help="Force polling (e.g. bind-mounted volumes)."
    ),
    initial_build: Optional[bool] = typer.Option(
        None, "--initial-build/--no-initial-build", help="Build once at startup."
    ),
    on_change: Optional[ChangeStrategy] = typer.Option(
        None, "--on-change", help="Stop the service when a rebuild starts, or only after it succeeds."
    ),
    clear: Optional[bool] = typer.Option(
        None, "--clear/--no-clear", help="Clear the screen before each build."
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", "-l", help="Logging level (DEBUG, INFO, WARNING, ERROR)."
    ),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file", help="Also write logs to this file."
    ),
) -> None:
    """Watch the project, rebuild on change and keep the service running."""
    settings = settings_or_exit(
        console,
        root=root,
        build_command=build,
        run_command=run,
        debounce_ms=debounce_ms,
        stop_timeout_s=stop_timeout,
        force_polling=poll,
        initial_build=initial_build,
        on_change=on_change,
        clear_screen=clear,
        log_level=log_level,
        log_file=log_file,
    )
    if ignore:
        settings = settings.model_copy(
            update={"ignore_patterns": [*settings.ignore_patterns, *ignore]}
        )

    if not settings.project_root.is_dir():
        console.print(f"[bold red]Project root not found:[/bold red] {settings.project_root}")
        raise typer.Exit(code=2)

    configure_logging(settings.log_level, settings.log_file)
    renderer = StatusRenderer(
        console=console,
        root=settings.project_root,
        clear_screen=settings.clear_screen,
    )
    orchestrator = Orchestrator(settings, renderer=renderer)
    raise typer.Exit(code=orchestrator.run())
