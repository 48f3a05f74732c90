"""``hotforge build`` — run the build command once.

Useful in CI and for checking a configuration: the result is classified
exactly as the watch loop would classify it.  Exits 0 on success, else
with the build's exit code (1 when there is none).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from hotforge.cli.commands._settings import settings_or_exit
from hotforge.core.build_runner import BuildRunner
from hotforge.log import configure_logging
from hotforge.models.builds import BuildJob
from hotforge.monitor.renderer import StatusRenderer

console = Console()


def build_cmd(
    root: Optional[Path] = typer.Option(
        None, "--root", "-C", help="Project root to build in."
    ),
    build: Optional[str] = typer.Option(
        None, "--build", "-b", help="Build command, e.g. 'cargo build'."
    ),
    show_output: bool = typer.Option(
        False, "--output", "-o", help="Print the captured build stdout."
    ),
) -> None:
    """Run one build and report the result."""
    settings = settings_or_exit(console, root=root, build_command=build)
    configure_logging(settings.log_level, settings.log_file)

    runner = BuildRunner(
        settings.build_command,
        settings.project_root,
        env=settings.env,
        timeout_s=settings.build_timeout_s,
        run_command=settings.run_command,
    )
    renderer = StatusRenderer(console=console, root=settings.project_root)

    job = BuildJob(seq=1)
    renderer.build_started(job)
    result = runner.run(job)
    if show_output and result.stdout:
        console.out(result.stdout, end="")
    renderer.build_finished(result)

    if result.succeeded:
        console.print(f"[bold]Artifact:[/bold] {result.artifact.display}")
        return
    raise typer.Exit(code=result.exit_code or 1)
