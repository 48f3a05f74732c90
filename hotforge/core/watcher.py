"""Filesystem watcher built on watchfiles.

``FileWatcher.events()`` is a lazy, infinite generator of
:class:`ChangeEvent`; every call starts a fresh watch.  Ignore patterns from
the :class:`WatchTarget` are applied inside the watchfiles filter, so an
ignored path never produces an event.

If the root is missing when the watch starts, or disappears while it runs,
:class:`WatchError` is raised.  There is no retry; a vanished root is an
external condition the supervisor cannot repair.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from pathlib import Path

from watchfiles import Change, watch

from hotforge.core.errors import WatchError
from hotforge.models.messages import WatchFailed
from hotforge.models.watch import ChangeEvent, ChangeKind, WatchTarget

logger = logging.getLogger(__name__)

_CHANGE_KINDS: dict[Change, ChangeKind] = {
    Change.added: ChangeKind.CREATED,
    Change.modified: ChangeKind.MODIFIED,
    Change.deleted: ChangeKind.REMOVED,
}

# How often (ms) the rust notifier yields when idle, so a vanished root and
# the stop event are noticed even without filesystem activity.
_IDLE_TIMEOUT_MS = 1000


class IgnoreFilter:
    """watchfiles filter that rejects paths matching the target's ignore patterns."""

    def __init__(self, target: WatchTarget) -> None:
        self.target = target

    def __call__(self, change: Change, path: str) -> bool:
        return not self.target.is_ignored(path)

    def __repr__(self) -> str:
        return f"IgnoreFilter(patterns={list(self.target.ignore_patterns)!r})"


class FileWatcher:
    """Watches a :class:`WatchTarget` and produces change events.

    Parameters
    ----------
    target:
        Root directory and ignore patterns.
    force_polling:
        Poll instead of using native notifications (bind-mounted volumes).
    poll_delay_ms:
        Polling interval when ``force_polling`` is set.
    """

    def __init__(
        self,
        target: WatchTarget,
        *,
        force_polling: bool = False,
        poll_delay_ms: int = 300,
    ) -> None:
        self.target = target
        self.force_polling = force_polling
        self.poll_delay_ms = poll_delay_ms
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def _check_root(self) -> None:
        root: Path = self.target.root
        if not root.is_dir():
            raise WatchError(f"watch root is not accessible: {root}")

    def events(self, stop_event: threading.Event | None = None) -> Iterator[ChangeEvent]:
        """Yield change events until *stop_event* is set.

        Raises :class:`WatchError` when the root is (or becomes) inaccessible.
        """
        self._check_root()
        try:
            for changes in watch(
                self.target.root,
                watch_filter=IgnoreFilter(self.target),
                debounce=50,
                step=10,
                stop_event=stop_event,
                rust_timeout=_IDLE_TIMEOUT_MS,
                yield_on_timeout=True,
                raise_interrupt=False,
                force_polling=self.force_polling,
                poll_delay_ms=self.poll_delay_ms,
            ):
                self._check_root()
                for change, raw_path in sorted(changes, key=lambda item: item[1]):
                    yield ChangeEvent(path=Path(raw_path), kind=_CHANGE_KINDS[change])
        except FileNotFoundError as exc:
            raise WatchError(f"watch root is not accessible: {self.target.root}") from exc

    # ------------------------------------------------------------------
    # Background thread
    # ------------------------------------------------------------------

    def start(self, post: Callable[[object], None]) -> None:
        """Run :meth:`events` on a daemon thread, posting into *post*."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._pump, args=(post,), name="hotforge-watcher", daemon=True
        )
        self._thread.start()
        logger.info("Watching %s", self.target.root)

    def _pump(self, post: Callable[[object], None]) -> None:
        try:
            for event in self.events(self._stop_event):
                post(event)
        except (WatchError, OSError) as exc:
            logger.error("Watcher stopped: %s", exc)
            post(WatchFailed(message=str(exc)))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Watcher crashed")
            post(WatchFailed(message=f"watcher crashed: {exc}"))

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the watch thread to exit and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
