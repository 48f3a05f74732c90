"""Tests for the quiet-window Debouncer."""

from __future__ import annotations

from pathlib import Path

import pytest

from hotforge.core.debouncer import Debouncer
from hotforge.models.watch import ChangeEvent, ChangeKind


def _event(name: str) -> ChangeEvent:
    return ChangeEvent(path=Path("/proj") / name, kind=ChangeKind.MODIFIED)


class TestDebouncer:
    def test_idle_has_nothing_pending(self):
        deb = Debouncer(0.2, clock=lambda: 0.0)
        assert deb.pending is False
        assert deb.time_until_flush() is None
        assert deb.flush_if_due() is None

    def test_flush_after_quiet_window(self):
        deb = Debouncer(0.2)
        deb.add(_event("a.rs"), now=10.0)
        assert deb.flush_if_due(now=10.1) is None
        assert deb.flush_if_due(now=10.2) == frozenset({Path("/proj/a.rs")})
        assert deb.pending is False

    def test_new_event_resets_window(self):
        deb = Debouncer(0.2)
        deb.add(_event("a.rs"), now=10.0)
        deb.add(_event("b.rs"), now=10.15)
        assert deb.flush_if_due(now=10.25) is None
        assert deb.time_until_flush(now=10.25) == pytest.approx(0.1)
        assert deb.flush_if_due(now=10.35) == frozenset(
            {Path("/proj/a.rs"), Path("/proj/b.rs")}
        )

    @pytest.mark.parametrize(
        "gaps",
        [
            [0.0] * 20,
            [0.05, 0.1, 0.19, 0.01, 0.15],
            [0.199] * 8,
        ],
    )
    def test_burst_within_window_yields_exactly_one_flush(self, gaps: list[float]):
        deb = Debouncer(0.2)
        now = 0.0
        flushes = []
        for i, gap in enumerate(gaps):
            now += gap
            flushed = deb.flush_if_due(now=now)
            if flushed is not None:
                flushes.append(flushed)
            deb.add(_event(f"f{i % 3}.rs"), now=now)
        flushes.append(deb.flush_if_due(now=now + 0.2))
        assert len(flushes) == 1
        assert flushes[0] == frozenset(Path(f"/proj/f{i}.rs") for i in range(min(3, len(gaps))))

    def test_duplicate_paths_collapse(self):
        deb = Debouncer(0.1)
        for _ in range(5):
            deb.add(_event("same.rs"), now=1.0)
        assert deb.flush_if_due(now=2.0) == frozenset({Path("/proj/same.rs")})

    def test_request_is_due_immediately(self):
        deb = Debouncer(5.0)
        deb.request(now=3.0)
        assert deb.time_until_flush(now=3.0) == 0.0
        assert deb.flush_if_due(now=3.0) == frozenset()

    def test_request_pulls_pending_deadline_forward(self):
        deb = Debouncer(5.0)
        deb.add(_event("a.rs"), now=1.0)
        deb.request(now=2.0)
        assert deb.flush_if_due(now=2.0) == frozenset({Path("/proj/a.rs")})

    def test_clear_drops_pending(self):
        deb = Debouncer(0.2)
        deb.add(_event("a.rs"), now=0.0)
        deb.clear()
        assert deb.pending is False
        assert deb.flush_if_due(now=10.0) is None

    def test_negative_window_clamped(self):
        assert Debouncer(-1.0).window_s == 0.0

    def test_uses_injected_clock(self):
        now = [50.0]
        deb = Debouncer(0.3, clock=lambda: now[0])
        deb.add(_event("a.rs"))
        now[0] = 50.2
        assert deb.flush_if_due() is None
        now[0] = 50.3
        assert deb.flush_if_due() == frozenset({Path("/proj/a.rs")})
