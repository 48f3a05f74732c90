"""hotforge data models — all Pydantic v2, all frozen (immutable)."""

from hotforge.models.builds import Artifact, BuildJob, BuildResult, BuildStatus
from hotforge.models.messages import (
    BuildFinished,
    LoopMessage,
    ProcessExited,
    ShutdownRequested,
    WatchFailed,
)
from hotforge.models.states import (
    BUSY_STATES,
    VALID_TRANSITIONS,
    LoopState,
    StateTransition,
)
from hotforge.models.watch import (
    DEFAULT_IGNORE_PATTERNS,
    ChangeEvent,
    ChangeKind,
    WatchTarget,
)

__all__ = [
    # watch
    "DEFAULT_IGNORE_PATTERNS",
    "ChangeEvent",
    "ChangeKind",
    "WatchTarget",
    # builds
    "Artifact",
    "BuildJob",
    "BuildResult",
    "BuildStatus",
    # states
    "BUSY_STATES",
    "VALID_TRANSITIONS",
    "LoopState",
    "StateTransition",
    # messages
    "BuildFinished",
    "LoopMessage",
    "ProcessExited",
    "ShutdownRequested",
    "WatchFailed",
]
