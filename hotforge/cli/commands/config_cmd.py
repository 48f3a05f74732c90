"""``hotforge config`` — show the effective settings.

Settings are resolved exactly as ``hotforge run`` resolves them
(environment, ``.env``, ``hotforge.toml``, ``[tool.hotforge]``).
"""

from __future__ import annotations

import shlex

from rich.console import Console
from rich.table import Table

from hotforge.cli.commands._settings import settings_or_exit

console = Console()


def config_cmd() -> None:
    """Print the effective settings as a table."""
    settings = settings_or_exit(console)

    table = Table(title="hotforge settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for name, value in settings.model_dump().items():
        if name in {"build_command", "run_command"}:
            display = shlex.join(value) if value else "[dim](artifact from build output)[/dim]"
        elif name == "ignore_patterns":
            display = ", ".join(value)
        elif value is None:
            display = "[dim]-[/dim]"
        elif hasattr(value, "value"):
            display = str(value.value)
        else:
            display = str(value)
        table.add_row(name, display)

    table.add_row("project_root", str(settings.project_root))
    console.print(table)
