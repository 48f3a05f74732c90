"""Watch target and filesystem change models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from fnmatch import fnmatch
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    ".git",
    ".hg",
    ".svn",
    "target",
    "build",
    "dist",
    "node_modules",
    "__pycache__",
    ".hotforge",
    "*.swp",
    "*.swx",
    "*~",
    ".#*",
    "*.tmp",
    "4913",  # vim's write-permission probe file
)


class ChangeKind(str, Enum):
    """What happened to a path."""

    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"


class WatchTarget(BaseModel):
    """A directory tree to watch plus the glob patterns excluded from it.

    Patterns are matched against every component of a path relative to
    ``root`` and against the whole relative path, so ``target`` excludes
    the build output directory at any depth and ``docs/*.md`` excludes
    only markdown directly under ``docs``.
    """

    model_config = ConfigDict(frozen=True)

    root: Path
    ignore_patterns: tuple[str, ...] = DEFAULT_IGNORE_PATTERNS

    @field_validator("root")
    @classmethod
    def _absolute_root(cls, value: Path) -> Path:
        return Path(value).expanduser().resolve()

    def relative(self, path: str | Path) -> Path | None:
        """Return *path* relative to the root, or ``None`` if it lies outside."""
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        try:
            return candidate.relative_to(self.root)
        except ValueError:
            pass
        try:
            return candidate.resolve().relative_to(self.root)
        except ValueError:
            return None

    def is_ignored(self, path: str | Path) -> bool:
        """Whether changes to *path* must never reach the build trigger."""
        rel = self.relative(path)
        if rel is None:
            return True
        if not rel.parts:
            return False
        rel_posix = rel.as_posix()
        for pattern in self.ignore_patterns:
            if fnmatch(rel_posix, pattern):
                return True
            if any(fnmatch(part, pattern) for part in rel.parts):
                return True
        return False


class ChangeEvent(BaseModel):
    """A single observed filesystem change. Consumed by the debouncer."""

    model_config = ConfigDict(frozen=True)

    path: Path
    kind: ChangeKind
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
