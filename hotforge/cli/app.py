"""Main Typer application — imports and registers all CLI commands.

Entry point: ``hotforge`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import typer

from hotforge.cli.commands.build_cmd import build_cmd
from hotforge.cli.commands.config_cmd import config_cmd
from hotforge.cli.commands.run_cmd import run_cmd

app = typer.Typer(
    name="hotforge",
    help="hotforge: watch a project, rebuild on change, restart the service.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="run", help="Watch, rebuild and keep the service running.")(run_cmd)
app.command(name="build", help="Run the build command once and report the result.")(build_cmd)
app.command(name="config", help="Show the effective settings.")(config_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
