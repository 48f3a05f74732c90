"""Build runner — invokes the project's build command.

``run(job)`` is synchronous and returns an immutable :class:`BuildResult`
stamped with the job's ``seq``; stdout and stderr are captured per job, so
output can never be attributed to a different build.  ``submit(job, post)``
runs the same thing on a worker thread and posts :class:`BuildFinished`
into the orchestrator's channel.  Only one build may be in flight.

A build that succeeds (exit code 0) must also yield an artifact: either the
configured run command, or an existing file named on the last line of the
build's stdout.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path

from hotforge.core.errors import BuildError
from hotforge.core.process_group import kill_group, spawn
from hotforge.models.builds import Artifact, BuildJob, BuildResult, BuildStatus
from hotforge.models.messages import BuildFinished

logger = logging.getLogger(__name__)

SPAWN_FAILED_EXIT_CODE = 127


class BuildRunner:
    """Runs the build command for :class:`BuildJob`s, one at a time.

    Parameters
    ----------
    command:
        Build command argv, run with *cwd* as working directory.
    cwd:
        Project root.
    env:
        Extra environment variables layered over the current environment.
    timeout_s:
        Kill builds that run longer than this.
    run_command:
        Launch command for the built service.  When empty, the artifact is
        read from the last line of the build's stdout.
    """

    def __init__(
        self,
        command: Sequence[str],
        cwd: Path,
        *,
        env: Mapping[str, str] | None = None,
        timeout_s: float | None = None,
        run_command: Sequence[str] | None = None,
    ) -> None:
        if not command:
            raise BuildError("build command must not be empty")
        self.command = tuple(command)
        self.cwd = Path(cwd)
        self.env = dict(env or {})
        self.timeout_s = timeout_s
        self.run_command = tuple(run_command or ())

        self._lock = threading.Lock()
        self._busy_seq: int | None = None
        self._cancel_seq: int | None = None
        self._proc: subprocess.Popen | None = None
        self._proc_seq: int | None = None
        self._worker: threading.Thread | None = None

    @property
    def in_flight(self) -> int | None:
        """Seq of the build currently submitted, if any."""
        with self._lock:
            return self._busy_seq

    # ------------------------------------------------------------------
    # Synchronous build
    # ------------------------------------------------------------------

    def run(self, job: BuildJob) -> BuildResult:
        """Run the build command for *job* and classify the outcome."""
        started_at = datetime.now(timezone.utc)
        t0 = time.monotonic()
        logger.info("Build #%d: %s", job.seq, shlex.join(self.command))

        try:
            proc = spawn(
                self.command,
                self.cwd,
                self.env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            logger.error("Build #%d could not start: %s", job.seq, exc)
            return BuildResult(
                seq=job.seq,
                status=BuildStatus.FAILED,
                exit_code=SPAWN_FAILED_EXIT_CODE,
                diagnostics=f"cannot run build command {shlex.join(self.command)}: {exc}",
                trigger_paths=job.trigger_paths,
                started_at=started_at,
                duration_s=time.monotonic() - t0,
            )

        with self._lock:
            self._proc, self._proc_seq = proc, job.seq
            if self._cancel_seq == job.seq:
                kill_group(proc)

        timed_out = False
        try:
            stdout, stderr = proc.communicate(timeout=self.timeout_s)
        except subprocess.TimeoutExpired:
            timed_out = True
            kill_group(proc)
            stdout, stderr = proc.communicate()
        finally:
            with self._lock:
                cancelled = self._cancel_seq == job.seq
                self._proc, self._proc_seq = None, None
                if cancelled:
                    self._cancel_seq = None

        duration = time.monotonic() - t0
        common = dict(
            seq=job.seq,
            exit_code=proc.returncode,
            stdout=stdout,
            stderr=stderr,
            trigger_paths=job.trigger_paths,
            started_at=started_at,
            duration_s=duration,
        )

        if cancelled:
            logger.info("Build #%d cancelled after %.2fs", job.seq, duration)
            return BuildResult(
                status=BuildStatus.CANCELLED,
                diagnostics=f"build #{job.seq} cancelled",
                **common,
            )
        if timed_out:
            logger.warning("Build #%d timed out after %.2fs", job.seq, duration)
            return BuildResult(
                status=BuildStatus.TIMED_OUT,
                diagnostics=stderr or f"build timed out after {self.timeout_s}s",
                **common,
            )
        if proc.returncode != 0:
            logger.info("Build #%d failed with exit code %d", job.seq, proc.returncode)
            return BuildResult(
                status=BuildStatus.FAILED,
                diagnostics=stderr or f"build exited with code {proc.returncode}",
                **common,
            )

        artifact = self.resolve_artifact(stdout)
        if artifact is None:
            logger.info("Build #%d succeeded but reported no artifact", job.seq)
            return BuildResult(
                status=BuildStatus.FAILED,
                diagnostics="build succeeded but reported no artifact",
                **common,
            )

        logger.info("Build #%d succeeded in %.2fs", job.seq, duration)
        return BuildResult(
            status=BuildStatus.SUCCEEDED,
            diagnostics=stderr,
            artifact=artifact,
            **common,
        )

    def resolve_artifact(self, stdout: str) -> Artifact | None:
        """Determine what to launch after a successful build."""
        if self.run_command:
            return Artifact(command=self.run_command)
        lines = [line.strip() for line in stdout.splitlines() if line.strip()]
        if not lines:
            return None
        candidate = Path(lines[-1])
        if not candidate.is_absolute():
            candidate = self.cwd / candidate
        if not candidate.is_file():
            return None
        return Artifact(command=(str(candidate),), path=candidate)

    # ------------------------------------------------------------------
    # Background build
    # ------------------------------------------------------------------

    def submit(self, job: BuildJob, post: Callable[[object], None]) -> None:
        """Run *job* on a worker thread and post ``BuildFinished`` when done."""
        with self._lock:
            if self._busy_seq is not None:
                raise BuildError(
                    f"build #{self._busy_seq} is still running; cannot start #{job.seq}"
                )
            self._busy_seq = job.seq
            self._worker = threading.Thread(
                target=self._work,
                args=(job, post),
                name=f"hotforge-build-{job.seq}",
                daemon=True,
            )
            self._worker.start()

    def _work(self, job: BuildJob, post: Callable[[object], None]) -> None:
        try:
            result = self.run(job)
        except Exception as exc:
            logger.exception("Build #%d crashed", job.seq)
            result = BuildResult(
                seq=job.seq,
                status=BuildStatus.FAILED,
                diagnostics=f"build runner error: {exc}",
                trigger_paths=job.trigger_paths,
            )
        with self._lock:
            self._busy_seq = None
        post(BuildFinished(result=result))

    def cancel(self, seq: int | None = None) -> bool:
        """Cancel the in-flight build (only if it is *seq*, when given).

        Returns True when a cancellation was issued.
        """
        with self._lock:
            if self._busy_seq is None or (seq is not None and self._busy_seq != seq):
                return False
            self._cancel_seq = self._busy_seq
            if self._proc is not None and self._proc_seq == self._busy_seq:
                kill_group(self._proc)
            logger.info("Cancelling build #%d", self._busy_seq)
            return True

    def join(self, timeout: float | None = None) -> None:
        """Wait for the worker thread, if any."""
        worker = self._worker
        if worker is not None:
            worker.join(timeout)
