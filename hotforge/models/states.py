"""Supervisor loop states and the transition table."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class LoopState(str, Enum):
    """States of the watch-build-run loop."""

    IDLE = "idle"
    BUILDING = "building"
    STARTING = "starting"
    RUNNING = "running"
    FAILED = "failed"
    TERMINATED = "terminated"


# Valid state transitions, enforced by LoopStateMachine.
# BUILDING -> BUILDING is the hand-off from a superseded build to the pending one.
# Every live state may terminate; TERMINATED is final.
VALID_TRANSITIONS: dict[LoopState, set[LoopState]] = {
    LoopState.IDLE: {LoopState.BUILDING, LoopState.TERMINATED},
    LoopState.BUILDING: {
        LoopState.STARTING,
        LoopState.FAILED,
        LoopState.BUILDING,
        LoopState.TERMINATED,
    },
    LoopState.STARTING: {LoopState.RUNNING, LoopState.FAILED, LoopState.TERMINATED},
    LoopState.RUNNING: {
        LoopState.BUILDING,
        LoopState.IDLE,
        LoopState.FAILED,
        LoopState.TERMINATED,
    },
    LoopState.FAILED: {LoopState.BUILDING, LoopState.TERMINATED},
    LoopState.TERMINATED: set(),
}

# States in which shutdown interrupts work in flight.
BUSY_STATES: frozenset[LoopState] = frozenset({LoopState.BUILDING, LoopState.STARTING})


class StateTransition(BaseModel):
    """Records a single loop state transition."""

    model_config = ConfigDict(frozen=True)

    from_state: LoopState
    to_state: LoopState
    reason: str = ""
    seq: int | None = None  # build seq that caused the transition, if any
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
