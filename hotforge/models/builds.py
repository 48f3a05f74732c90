"""Build job and build result models."""

from __future__ import annotations

import shlex
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class BuildStatus(str, Enum):
    """Terminal outcome of a build attempt."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


class BuildJob(BaseModel):
    """One build attempt, created when the debouncer flushes.

    ``seq`` is strictly increasing per orchestrator; the result of a job
    is only acted on while its ``seq`` is the latest one triggered.
    """

    model_config = ConfigDict(frozen=True)

    seq: int
    trigger_paths: frozenset[Path] = frozenset()
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def is_startup(self) -> bool:
        """True for the build queued at startup rather than by an edit."""
        return not self.trigger_paths


class Artifact(BaseModel):
    """What the process supervisor launches after a successful build."""

    model_config = ConfigDict(frozen=True)

    command: tuple[str, ...]
    path: Path | None = None

    @property
    def display(self) -> str:
        return shlex.join(self.command)


class BuildResult(BaseModel):
    """Immutable outcome of a :class:`BuildJob`."""

    model_config = ConfigDict(frozen=True)

    seq: int
    status: BuildStatus
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    diagnostics: str = ""
    artifact: Artifact | None = None
    trigger_paths: frozenset[Path] = frozenset()
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    duration_s: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == BuildStatus.SUCCEEDED and self.artifact is not None
