"""Supervisor orchestrator — the single control loop.

The Orchestrator wires the FileWatcher, Debouncer, BuildRunner,
ProcessSupervisor and LoopStateMachine together.  Worker threads (watcher,
build worker, process exit waiters) only post messages into ``channel``;
every state change happens on the thread calling :meth:`step`, so the loop
never races with itself.

Ordering rule: every coalesced trigger takes the next ``seq``.  A build
result is acted on only while its seq is ``latest_seq``; anything older is
stale and discarded, and the pending trigger is built next.
"""

from __future__ import annotations

import logging
import queue
import signal
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from hotforge.config import ChangeStrategy, HotforgeSettings
from hotforge.core.build_runner import BuildRunner
from hotforge.core.debouncer import Debouncer
from hotforge.core.errors import ProcessStartError
from hotforge.core.state_machine import LoopStateMachine
from hotforge.core.supervisor import ProcessSupervisor
from hotforge.core.watcher import FileWatcher
from hotforge.models.builds import BuildJob, BuildResult
from hotforge.models.messages import (
    BuildFinished,
    LoopMessage,
    ProcessExited,
    ShutdownRequested,
    WatchFailed,
)
from hotforge.models.states import BUSY_STATES, LoopState, StateTransition
from hotforge.models.watch import ChangeEvent
from hotforge.monitor.renderer import StatusRenderer, format_paths

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_WATCH_ERROR = 2
EXIT_INTERRUPTED = 130

# Upper bound on a single channel wait inside run(), so signals are noticed.
SIGNAL_POLL_S = 0.2


class Orchestrator:
    """Continuous watch-build-run loop.

    Parameters
    ----------
    settings:
        Supervisor settings.  Uses defaults (env/config files) if not provided.
    renderer, watcher, runner, supervisor:
        Component overrides; built from *settings* when omitted.
    clock:
        Monotonic clock for the debouncer.
    """

    def __init__(
        self,
        settings: HotforgeSettings | None = None,
        *,
        renderer: StatusRenderer | None = None,
        watcher: FileWatcher | None = None,
        runner: BuildRunner | None = None,
        supervisor: ProcessSupervisor | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or HotforgeSettings()
        root = self.settings.project_root

        self.channel: queue.Queue[LoopMessage] = queue.Queue()
        self.renderer = renderer or StatusRenderer(
            root=root, clear_screen=self.settings.clear_screen
        )
        self.watcher = watcher or FileWatcher(
            self.settings.watch_target(),
            force_polling=self.settings.force_polling,
            poll_delay_ms=self.settings.poll_delay_ms,
        )
        self.runner = runner or BuildRunner(
            self.settings.build_command,
            root,
            env=self.settings.env,
            timeout_s=self.settings.build_timeout_s,
            run_command=self.settings.run_command,
        )
        self.supervisor = supervisor or ProcessSupervisor(
            root,
            env=self.settings.env,
            stop_timeout_s=self.settings.stop_timeout_s,
            start_grace_s=self.settings.start_grace_s,
            on_exit=self._post_process_exit,
        )
        self.debouncer = Debouncer(self.settings.debounce_s, clock=clock)
        self.machine = LoopStateMachine()
        self.machine.add_listener(self._on_transition)

        self.latest_seq = 0
        self.builds_started = 0
        self._building: BuildJob | None = None
        self._pending: set[Path] | None = None
        self._exit_code: int | None = None
        self._signal_received: int | None = None

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    @property
    def state(self) -> LoopState:
        return self.machine.state

    @property
    def history(self) -> list[StateTransition]:
        return self.machine.history

    @property
    def exit_code(self) -> int:
        return EXIT_OK if self._exit_code is None else self._exit_code

    @property
    def building(self) -> BuildJob | None:
        return self._building

    @property
    def pending_paths(self) -> frozenset[Path] | None:
        """Paths of the trigger queued behind the in-flight build, if any."""
        return None if self._pending is None else frozenset(self._pending)

    # ------------------------------------------------------------------
    # Thread-safe inputs
    # ------------------------------------------------------------------

    def notify_change(self, event: ChangeEvent) -> None:
        self.channel.put(event)

    def request_shutdown(self, signum: int | None = None) -> None:
        self.channel.put(ShutdownRequested(signum=signum))

    def _post_process_exit(self, pid: int, returncode: int) -> None:
        self.channel.put(ProcessExited(pid=pid, returncode=returncode))

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def run(self) -> int:
        """Run until shutdown or a fatal watch error; return the exit status."""
        restore = self._install_signal_handlers()
        try:
            self.renderer.banner(
                self.settings.project_root,
                " ".join(self.settings.build_command),
                " ".join(self.settings.run_command),
            )
            self.watcher.start(self.channel.put)
            if self.settings.initial_build:
                self.debouncer.request()
            while self.step(timeout=SIGNAL_POLL_S):
                pass
        finally:
            self.close()
            restore()
        self.renderer.shutdown(self.exit_code, self.builds_started)
        return self.exit_code

    def step(self, timeout: float | None = None) -> bool:
        """Handle at most one message, then flush the debouncer if due.

        Blocks until a message arrives, the debounce deadline passes, or
        *timeout* elapses.  Returns False once the loop has terminated.
        """
        if self.state == LoopState.TERMINATED:
            return False
        if self._signal_received is not None:
            self._shutdown(f"signal {self._signal_received}")
            return False

        wait = self.debouncer.time_until_flush()
        if timeout is not None:
            wait = timeout if wait is None else min(wait, timeout)
        try:
            if wait is not None and wait <= 0:
                message = self.channel.get_nowait()
            else:
                message = self.channel.get(timeout=wait)
        except queue.Empty:
            message = None

        if message is not None:
            self._dispatch(message)

        if self.state != LoopState.TERMINATED:
            paths = self.debouncer.flush_if_due()
            if paths is not None:
                self._on_trigger(paths)
        return self.state != LoopState.TERMINATED

    def close(self) -> None:
        """Release everything the loop owns. Safe to call more than once."""
        self.watcher.stop()
        if self.runner.in_flight is not None:
            self.runner.cancel()
            self.runner.join(self.settings.stop_timeout_s)
        self._stop_process()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _dispatch(self, message: Any) -> None:
        if isinstance(message, ChangeEvent):
            self.debouncer.add(message)
        elif isinstance(message, BuildFinished):
            self._on_build_finished(message.result)
        elif isinstance(message, ProcessExited):
            self._on_process_exited(message.pid, message.returncode)
        elif isinstance(message, WatchFailed):
            self.renderer.watch_failed(message.message)
            self._terminate(EXIT_WATCH_ERROR, f"watch error: {message.message}")
        elif isinstance(message, ShutdownRequested):
            reason = "shutdown requested"
            if message.signum is not None:
                reason = f"signal {message.signum}"
            self._shutdown(reason)
        else:
            logger.warning("Ignoring unknown message %r", message)

    def _on_transition(self, record: StateTransition) -> None:
        logger.info(
            "%s -> %s%s",
            record.from_state.value,
            record.to_state.value,
            f" ({record.reason})" if record.reason else "",
        )
        self.renderer.transition(record)

    # ------------------------------------------------------------------
    # Builds
    # ------------------------------------------------------------------

    def _on_trigger(self, paths: frozenset[Path]) -> None:
        self.latest_seq += 1
        if self._building is not None:
            self._pending = (self._pending or set()) | set(paths)
            logger.info(
                "Build #%d in flight; trigger #%d queued",
                self._building.seq,
                self.latest_seq,
            )
            if self.settings.cancel_superseded:
                self.runner.cancel(self._building.seq)
            return
        self._start_build(self.latest_seq, paths)

    def _start_build(self, seq: int, paths: frozenset[Path] | set[Path]) -> None:
        job = BuildJob(seq=seq, trigger_paths=frozenset(paths))
        reason = "startup" if job.is_startup else format_paths(paths, self.settings.project_root)
        self.machine.transition(LoopState.BUILDING, reason=reason, seq=seq)

        if self.settings.on_change == ChangeStrategy.KILL_THEN_RESTART:
            self._stop_process()

        self._building = job
        self._pending = None
        self.builds_started += 1
        self.renderer.build_started(job)
        self.runner.submit(job, self.channel.put)

    def _on_build_finished(self, result: BuildResult) -> None:
        if self._building is None or result.seq != self._building.seq:
            logger.warning("Ignoring result for unknown build #%d", result.seq)
            return
        self._building = None

        if result.seq != self.latest_seq:
            self.renderer.build_discarded(result, self.latest_seq)
            self._start_build(self.latest_seq, self._pending or set())
            return

        self.renderer.build_finished(result)
        if not result.succeeded:
            detail = (
                f"exit code {result.exit_code}"
                if result.exit_code is not None
                else result.status.value
            )
            self.machine.transition(
                LoopState.FAILED, reason=f"build {result.status.value} ({detail})", seq=result.seq
            )
            return

        self.machine.transition(LoopState.STARTING, reason=result.artifact.display, seq=result.seq)
        try:
            managed = self.supervisor.restart(result.artifact)
        except ProcessStartError as exc:
            self.renderer.start_failed(str(exc))
            self.machine.transition(LoopState.FAILED, reason="start failed", seq=result.seq)
            return
        self.renderer.process_started(managed)
        self.machine.transition(LoopState.RUNNING, reason=f"pid {managed.pid}", seq=result.seq)

    # ------------------------------------------------------------------
    # Service
    # ------------------------------------------------------------------

    def _on_process_exited(self, pid: int, returncode: int) -> None:
        current = self.supervisor.current
        if current is None or current.pid != pid:
            logger.debug("Exit of replaced pid %d ignored", pid)
            return
        self.supervisor.stop()
        self.renderer.process_exited(pid, returncode)
        if self.state == LoopState.RUNNING:
            target = LoopState.IDLE if returncode == 0 else LoopState.FAILED
            self.machine.transition(target, reason=f"service exited with code {returncode}")

    def _stop_process(self) -> None:
        current = self.supervisor.current
        if current is None:
            return
        pid = current.pid
        returncode = self.supervisor.stop()
        self.renderer.process_stopped(pid, returncode)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def _shutdown(self, reason: str) -> None:
        busy = self.state in BUSY_STATES
        self._terminate(EXIT_INTERRUPTED if busy else EXIT_OK, reason)

    def _terminate(self, exit_code: int, reason: str) -> None:
        if self.state == LoopState.TERMINATED:
            return
        if self._building is not None:
            self.runner.cancel(self._building.seq)
            self._building = None
        self._pending = None
        self.debouncer.clear()
        self._stop_process()
        self._exit_code = exit_code
        self.machine.transition(LoopState.TERMINATED, reason=reason)

    def _install_signal_handlers(self) -> Callable[[], None]:
        """Route SIGINT/SIGTERM into the loop; returns a restore callback."""
        if threading.current_thread() is not threading.main_thread():
            return lambda: None

        def _handle(signum: int, _frame: object) -> None:
            self._signal_received = signum

        previous = {
            sig: signal.signal(sig, _handle)
            for sig in (signal.SIGINT, signal.SIGTERM)
        }

        def _restore() -> None:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

        return _restore
