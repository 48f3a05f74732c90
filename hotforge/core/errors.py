"""Error kinds raised by the supervisor components."""

from __future__ import annotations


class HotforgeError(RuntimeError):
    """Base class for hotforge errors."""


class WatchError(HotforgeError):
    """The watched root is missing or inaccessible. Fatal for the loop."""


class BuildError(HotforgeError):
    """The build runner was misused, e.g. a second concurrent build.

    A build command exiting non-zero is *not* raised; it is reported as a
    failed :class:`~hotforge.models.builds.BuildResult`.
    """


class ProcessStartError(HotforgeError):
    """The artifact could not be launched or died inside the grace window."""

    def __init__(self, message: str, *, command: tuple[str, ...] = (), returncode: int | None = None) -> None:
        super().__init__(message)
        self.command = command
        self.returncode = returncode


class ShutdownTimeout(HotforgeError):
    """A graceful stop exceeded its bound and was escalated to a kill."""
