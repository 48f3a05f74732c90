"""Loop state machine — validated, recorded transitions.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- Every transition recorded in ``history`` and logged
- Listeners (the status renderer) notified in transition order
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from hotforge.core.errors import HotforgeError
from hotforge.models.states import VALID_TRANSITIONS, LoopState, StateTransition

logger = logging.getLogger(__name__)


class InvalidTransitionError(HotforgeError):
    """Raised when a requested state transition is not valid."""


class LoopStateMachine:
    """Tracks the current :class:`LoopState` of the orchestrator.

    Parameters
    ----------
    initial:
        Starting state. The loop always starts in IDLE.
    """

    def __init__(self, initial: LoopState = LoopState.IDLE) -> None:
        self._state = initial
        self._history: list[StateTransition] = []
        self._listeners: list[Callable[[StateTransition], None]] = []

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def history(self) -> list[StateTransition]:
        """A copy of every transition recorded so far, oldest first."""
        return list(self._history)

    def add_listener(self, listener: Callable[[StateTransition], None]) -> None:
        self._listeners.append(listener)

    def can_transition(self, target: LoopState) -> bool:
        return target in VALID_TRANSITIONS.get(self._state, set())

    def transition(
        self,
        target: LoopState,
        *,
        reason: str = "",
        seq: int | None = None,
    ) -> StateTransition:
        """Move to *target*, recording and announcing the transition."""
        allowed = VALID_TRANSITIONS.get(self._state, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition from {self._state.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        record = StateTransition(
            from_state=self._state,
            to_state=target,
            reason=reason,
            seq=seq,
        )
        self._state = target
        self._history.append(record)
        logger.debug(
            "state %s -> %s (%s)", record.from_state.value, target.value, reason or "-"
        )

        for listener in self._listeners:
            listener(record)
        return record
