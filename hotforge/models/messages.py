"""Messages posted by worker threads into the orchestrator's channel.

The watcher, the build worker and the process exit waiters never touch
loop state directly; they only post one of these.
"""

from __future__ import annotations

from typing import Union

from pydantic import BaseModel, ConfigDict

from hotforge.models.builds import BuildResult
from hotforge.models.watch import ChangeEvent


class BuildFinished(BaseModel):
    """A build worker finished (successfully or not)."""

    model_config = ConfigDict(frozen=True)

    result: BuildResult


class WatchFailed(BaseModel):
    """The filesystem watcher stopped with an unrecoverable error."""

    model_config = ConfigDict(frozen=True)

    message: str


class ProcessExited(BaseModel):
    """A managed process exited; ``pid`` identifies which one."""

    model_config = ConfigDict(frozen=True)

    pid: int
    returncode: int


class ShutdownRequested(BaseModel):
    """External interrupt (SIGINT/SIGTERM) or programmatic stop."""

    model_config = ConfigDict(frozen=True)

    signum: int | None = None


LoopMessage = Union[ChangeEvent, BuildFinished, WatchFailed, ProcessExited, ShutdownRequested]
