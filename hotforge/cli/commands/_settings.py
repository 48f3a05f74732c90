"""Settings loading shared by the CLI commands."""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console

from hotforge.config import HotforgeSettings, load_settings

EXIT_CONFIG_ERROR = 2


def settings_or_exit(console: Console, **overrides: Any) -> HotforgeSettings:
    """Load settings; print validation errors and exit with code 2 on failure."""
    try:
        return load_settings(**overrides)
    except ValidationError as exc:
        console.print("[bold red]Invalid configuration:[/bold red]")
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"]) or "settings"
            console.print(f"  [cyan]{location}[/cyan]: {error['msg']}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)
