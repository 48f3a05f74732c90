"""Quiet-window debouncer that coalesces bursts of change events.

Editors and compilers produce several filesystem events per logical edit
(temp files, atomic renames, swap files).  The debouncer collects them and
releases a single trigger once no new event has been seen for ``window_s``.
Every new event pushes the deadline back.

The debouncer is a plain value holder driven by the orchestrator's loop;
it has no thread of its own.  ``clock`` is injectable for tests.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from pathlib import Path

from hotforge.models.watch import ChangeEvent


class Debouncer:
    """Accumulates changed paths until the quiet window elapses.

    Parameters
    ----------
    window_s:
        Quiet period in seconds after the most recent event.
    clock:
        Monotonic time source.
    """

    def __init__(
        self,
        window_s: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_s = max(0.0, float(window_s))
        self._clock = clock
        self._paths: set[Path] = set()
        self._deadline: float | None = None

    @property
    def pending(self) -> bool:
        return self._deadline is not None

    @property
    def pending_paths(self) -> frozenset[Path]:
        return frozenset(self._paths)

    def add(self, event: ChangeEvent, now: float | None = None) -> None:
        """Record an event and restart the quiet window."""
        t = self._clock() if now is None else now
        self._paths.add(event.path)
        self._deadline = t + self.window_s

    def request(self, paths: Iterable[Path] = (), now: float | None = None) -> None:
        """Queue a trigger that is due immediately (e.g. the startup build)."""
        t = self._clock() if now is None else now
        self._paths.update(paths)
        if self._deadline is None or self._deadline > t:
            self._deadline = t

    def time_until_flush(self, now: float | None = None) -> float | None:
        """Seconds until the pending trigger is due, or ``None`` if idle."""
        if self._deadline is None:
            return None
        t = self._clock() if now is None else now
        return max(0.0, self._deadline - t)

    def flush_if_due(self, now: float | None = None) -> frozenset[Path] | None:
        """Return the coalesced paths once the window has elapsed."""
        if self._deadline is None:
            return None
        t = self._clock() if now is None else now
        if t < self._deadline:
            return None
        paths = frozenset(self._paths)
        self.clear()
        return paths

    def clear(self) -> None:
        self._paths.clear()
        self._deadline = None
