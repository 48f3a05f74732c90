"""Shared test fixtures for hotforge."""

from __future__ import annotations

import io
import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from hotforge.config import HotforgeSettings
from hotforge.core.errors import BuildError, ProcessStartError
from hotforge.models.builds import Artifact, BuildResult, BuildStatus
from hotforge.models.messages import BuildFinished
from hotforge.monitor.renderer import StatusRenderer


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep HOTFORGE_* variables and stray config files out of every test."""
    for key in list(os.environ):
        if key.startswith("HOTFORGE_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    yield
    pkg_logger = logging.getLogger("hotforge")
    for handler in list(pkg_logger.handlers):
        pkg_logger.removeHandler(handler)
    pkg_logger.propagate = True
    pkg_logger.setLevel(logging.NOTSET)


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Provide a project root with a ``src`` directory."""
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    return root


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def renderer(output: io.StringIO, project_dir: Path) -> StatusRenderer:
    """A StatusRenderer writing plain text into ``output``."""
    console = Console(file=output, width=200, color_system=None, force_terminal=False)
    return StatusRenderer(console=console, root=project_dir)


@pytest.fixture
def settings(project_dir: Path) -> HotforgeSettings:
    return HotforgeSettings(
        root=project_dir,
        build_command=["build"],
        run_command=["serve"],
        debounce_ms=200,
    )


# ---------------------------------------------------------------------------
# Fake components for deterministic orchestrator tests
# ---------------------------------------------------------------------------


class FakeRunner:
    """Records submitted jobs; tests finish them by posting BuildFinished."""

    def __init__(self) -> None:
        self.submitted: list[Any] = []
        self.cancelled: list[int] = []
        self._busy: int | None = None

    @property
    def in_flight(self) -> int | None:
        return self._busy

    def submit(self, job, post) -> None:
        if self._busy is not None:
            raise BuildError(f"build #{self._busy} is still running")
        self._busy = job.seq
        self.submitted.append(job)

    def finish(self, result: BuildResult) -> BuildFinished:
        assert result.seq == self._busy
        self._busy = None
        return BuildFinished(result=result)

    def cancel(self, seq: int | None = None) -> bool:
        if self._busy is None or (seq is not None and seq != self._busy):
            return False
        self.cancelled.append(self._busy)
        return True

    def join(self, timeout: float | None = None) -> None:
        pass


class FakeProcess:
    def __init__(self, artifact: Artifact, pid: int) -> None:
        self.artifact = artifact
        self.pid = pid
        self.alive = True


class FakeSupervisor:
    """In-memory supervisor that tracks how many processes are alive."""

    def __init__(self, *, fail_start: bool = False) -> None:
        self.fail_start = fail_start
        self.current: FakeProcess | None = None
        self.started: list[FakeProcess] = []
        self.stopped: list[int] = []
        self._next_pid = 1000

    @property
    def is_running(self) -> bool:
        return self.current is not None

    @property
    def alive_count(self) -> int:
        return sum(1 for p in self.started if p.alive)

    def start(self, artifact: Artifact) -> FakeProcess:
        if self.current is not None:
            self.stop()
        if self.fail_start:
            raise ProcessStartError(
                f"{artifact.display} exited with code 1 during startup",
                command=artifact.command,
                returncode=1,
            )
        proc = FakeProcess(artifact, self._next_pid)
        self._next_pid += 1
        self.current = proc
        self.started.append(proc)
        return proc

    def stop(self) -> int | None:
        if self.current is None:
            return None
        self.current.alive = False
        self.stopped.append(self.current.pid)
        self.current = None
        return 0

    def restart(self, artifact: Artifact) -> FakeProcess:
        self.stop()
        return self.start(artifact)


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def fake_supervisor() -> FakeSupervisor:
    return FakeSupervisor()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_result() -> Callable[..., BuildResult]:
    """Factory fixture: build a BuildResult with sensible defaults."""

    def _factory(
        seq: int,
        *,
        ok: bool = True,
        stderr: str = "",
        exit_code: int | None = None,
        command: tuple[str, ...] | None = None,
        **overrides: Any,
    ) -> BuildResult:
        defaults: dict[str, Any] = {
            "seq": seq,
            "status": BuildStatus.SUCCEEDED if ok else BuildStatus.FAILED,
            "exit_code": exit_code if exit_code is not None else (0 if ok else 1),
            "stderr": stderr,
            "diagnostics": stderr,
            "artifact": Artifact(command=command or ("serve", f"--build={seq}")) if ok else None,
        }
        defaults.update(overrides)
        return BuildResult(**defaults)

    return _factory
