"""Spawning and signalling child process groups.

Build tools and ``cargo run``-style launchers fork children of their own;
signalling only the direct child would orphan them.  On POSIX every child
is started in its own session so the whole group can be signalled at once.
"""

from __future__ import annotations

import os
import signal
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

POSIX = os.name == "posix"


def spawn(
    argv: Sequence[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
    **popen_kwargs: Any,
) -> subprocess.Popen:
    """Start *argv* in *cwd* with *env* layered over the current environment."""
    merged = os.environ.copy()
    if env:
        merged.update(env)
    return subprocess.Popen(
        list(argv),
        cwd=str(cwd),
        env=merged,
        start_new_session=POSIX,
        **popen_kwargs,
    )


def terminate_group(proc: subprocess.Popen) -> None:
    """Ask the process group to exit (SIGTERM)."""
    if POSIX:
        _killpg(proc, signal.SIGTERM)
    elif proc.poll() is None:
        proc.terminate()


def kill_group(proc: subprocess.Popen) -> None:
    """Force the process group to exit (SIGKILL)."""
    if POSIX:
        _killpg(proc, signal.SIGKILL)
    elif proc.poll() is None:
        proc.kill()


def _killpg(proc: subprocess.Popen, sig: int) -> None:
    # The group may outlive its leader, so signal it even if proc has exited.
    # A pid is not reused while a process group with that id has members, so
    # after the leader is reaped this reaches only leftover children.  Once
    # the group is empty the id is free; signalling it then is best effort.
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        pass
