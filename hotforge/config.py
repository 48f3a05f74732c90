"""Supervisor configuration — env, file and CLI driven.

Centralized settings using pydantic-settings. Values are read, highest
precedence first, from explicit keyword arguments (the CLI), ``HOTFORGE_*``
environment variables, a ``.env`` file, ``hotforge.toml`` and the
``[tool.hotforge]`` table of ``pyproject.toml`` in the working directory.
"""

from __future__ import annotations

import logging
import shlex
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    PyprojectTomlConfigSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from hotforge.models.watch import DEFAULT_IGNORE_PATTERNS, WatchTarget


class ChangeStrategy(str, Enum):
    """What happens to the running service when a rebuild starts."""

    KILL_THEN_RESTART = "kill_then_restart"
    WAIT_THEN_RESTART = "wait_then_restart"


class HotforgeSettings(BaseSettings):
    """Settings for one supervised project.

    Examples
    --------
    Override via environment::

        export HOTFORGE_BUILD_COMMAND="cargo build --release"
        export HOTFORGE_RUN_COMMAND="./target/release/api"
        export HOTFORGE_FORCE_POLLING=true

    Or via ``hotforge.toml``::

        build_command = "cargo build"
        run_command = "cargo run"
        debounce_ms = 300
        ignore_patterns = ["target", ".git", "*.log"]
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="HOTFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
        toml_file="hotforge.toml",
        pyproject_toml_table_header=("tool", "hotforge"),
    )

    # Project
    root: Path = Path(".")
    build_command: Annotated[list[str], NoDecode] = ["cargo", "build"]
    run_command: Annotated[list[str], NoDecode] = ["cargo", "run"]
    env: dict[str, str] = {}

    # Watching
    ignore_patterns: Annotated[list[str], NoDecode] = list(DEFAULT_IGNORE_PATTERNS)
    debounce_ms: int = Field(200, ge=0)
    force_polling: bool = False
    poll_delay_ms: int = Field(300, gt=0)

    # Build
    build_timeout_s: float | None = Field(None, gt=0)
    cancel_superseded: bool = True
    initial_build: bool = True

    # Service lifecycle
    on_change: ChangeStrategy = ChangeStrategy.KILL_THEN_RESTART
    stop_timeout_s: float = Field(5.0, gt=0)
    start_grace_s: float = Field(0.5, ge=0)

    # Output
    clear_screen: bool = False
    log_level: str = "WARNING"
    log_file: Path | None = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            PyprojectTomlConfigSettingsSource(settings_cls),
        )

    @field_validator("build_command", "run_command", mode="before")
    @classmethod
    def _split_command(cls, value: Any) -> Any:
        if isinstance(value, str):
            return shlex.split(value)
        return value

    @field_validator("build_command")
    @classmethod
    def _build_command_required(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("build_command must not be empty")
        return value

    @field_validator("ignore_patterns", mode="before")
    @classmethod
    def _split_patterns(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [p.strip() for p in value.split(",") if p.strip()]
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(
                f"unknown log level {value!r}; use DEBUG, INFO, WARNING, ERROR or CRITICAL"
            )
        return level

    @property
    def project_root(self) -> Path:
        """Absolute project root; cwd for the build and run commands."""
        return self.root.expanduser().resolve()

    @property
    def debounce_s(self) -> float:
        return self.debounce_ms / 1000.0

    def watch_target(self) -> WatchTarget:
        """Build the WatchTarget for this project."""
        return WatchTarget(
            root=self.project_root,
            ignore_patterns=tuple(self.ignore_patterns),
        )


def load_settings(**overrides: Any) -> HotforgeSettings:
    """Load settings, applying only the overrides that were actually given.

    ``None`` values (unset CLI options) fall through to the environment and
    config files instead of clobbering them.
    """
    given = {key: value for key, value in overrides.items() if value is not None}
    return HotforgeSettings(**given)
