"""Process supervisor — owns the single managed-process slot.

Invariant: at most one managed process is alive at any time.  The slot is
mutated only by :meth:`ProcessSupervisor.start` and
:meth:`ProcessSupervisor.stop`, and both are called from the orchestrator's
control thread.  ``start`` always stops the previous process first.

Stopping is graceful: SIGTERM to the process group, wait up to
``stop_timeout_s``, then SIGKILL.  Exceeding the bound is logged as a
warning (:class:`ShutdownTimeout`) and never fails the stop.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from pathlib import Path

from hotforge.core.errors import ProcessStartError, ShutdownTimeout
from hotforge.core.process_group import kill_group, spawn, terminate_group
from hotforge.models.builds import Artifact

logger = logging.getLogger(__name__)


class ManagedProcess:
    """The running artifact. Only the supervisor creates or clears one."""

    def __init__(self, artifact: Artifact, popen: subprocess.Popen) -> None:
        self.artifact = artifact
        self.popen = popen
        self.started_at = datetime.now(timezone.utc)

    @property
    def pid(self) -> int:
        return self.popen.pid

    @property
    def returncode(self) -> int | None:
        return self.popen.poll()

    @property
    def alive(self) -> bool:
        return self.popen.poll() is None

    def __repr__(self) -> str:
        return f"ManagedProcess(pid={self.pid}, command={self.artifact.display!r})"


class ProcessSupervisor:
    """Starts, stops and restarts the built artifact.

    Parameters
    ----------
    cwd:
        Working directory for the service (the project root).
    env:
        Extra environment variables for the service.
    stop_timeout_s:
        Grace period between SIGTERM and SIGKILL.
    start_grace_s:
        A process that exits within this window counts as a failed start.
    on_exit:
        Called as ``on_exit(pid, returncode)`` from a waiter thread when a
        started process exits for any reason.
    """

    def __init__(
        self,
        cwd: Path,
        *,
        env: Mapping[str, str] | None = None,
        stop_timeout_s: float = 5.0,
        start_grace_s: float = 0.5,
        on_exit: Callable[[int, int], None] | None = None,
    ) -> None:
        self.cwd = Path(cwd)
        self.env = dict(env or {})
        self.stop_timeout_s = stop_timeout_s
        self.start_grace_s = start_grace_s
        self.on_exit = on_exit
        self._current: ManagedProcess | None = None

    @property
    def current(self) -> ManagedProcess | None:
        return self._current

    @property
    def is_running(self) -> bool:
        return self._current is not None and self._current.alive

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, artifact: Artifact) -> ManagedProcess:
        """Launch *artifact*, stopping any previous process first.

        Raises :class:`ProcessStartError` if it cannot be spawned or exits
        within ``start_grace_s``.  The slot is empty afterwards in that case.
        """
        if self._current is not None:
            self.stop()

        logger.info("Starting %s", artifact.display)
        try:
            popen = spawn(artifact.command, self.cwd, self.env, stdin=subprocess.DEVNULL)
        except OSError as exc:
            raise ProcessStartError(
                f"cannot launch {artifact.display}: {exc}",
                command=artifact.command,
            ) from exc

        if self.start_grace_s > 0:
            try:
                returncode = popen.wait(timeout=self.start_grace_s)
            except subprocess.TimeoutExpired:
                returncode = None
            if returncode is not None:
                # Reap anything the launcher left behind in its group.
                kill_group(popen)
                raise ProcessStartError(
                    f"{artifact.display} exited with code {returncode} during startup",
                    command=artifact.command,
                    returncode=returncode,
                )

        managed = ManagedProcess(artifact, popen)
        self._current = managed
        threading.Thread(
            target=self._wait_for_exit,
            args=(managed,),
            name=f"hotforge-proc-{managed.pid}",
            daemon=True,
        ).start()
        logger.info("Started pid %d", managed.pid)
        return managed

    def stop(self) -> int | None:
        """Gracefully stop the managed process and clear the slot.

        Returns the exit code, or None if nothing was running.
        """
        managed = self._current
        if managed is None:
            return None
        self._current = None

        popen = managed.popen
        if popen.poll() is not None:
            kill_group(popen)
            return popen.returncode

        logger.info("Stopping pid %d", managed.pid)
        t0 = time.monotonic()
        terminate_group(popen)
        try:
            self._wait_or_raise(popen, self.stop_timeout_s)
        except ShutdownTimeout as exc:
            logger.warning("%s; sending SIGKILL", exc)
            kill_group(popen)
            popen.wait()
        else:
            # Children that ignored SIGTERM after their leader exited.
            kill_group(popen)
        logger.info(
            "Stopped pid %d (exit %s) in %.2fs",
            managed.pid,
            popen.returncode,
            time.monotonic() - t0,
        )
        return popen.returncode

    def restart(self, artifact: Artifact) -> ManagedProcess:
        """Stop the current process (if any), then start *artifact*."""
        self.stop()
        return self.start(artifact)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _wait_or_raise(popen: subprocess.Popen, timeout: float) -> int:
        try:
            return popen.wait(timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            raise ShutdownTimeout(
                f"pid {popen.pid} did not exit within {timeout:.1f}s"
            ) from exc

    def _wait_for_exit(self, managed: ManagedProcess) -> None:
        returncode = managed.popen.wait()
        if self.on_exit is not None:
            self.on_exit(managed.pid, returncode)
