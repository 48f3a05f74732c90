"""hotforge: continuous build-and-run supervisor.

Watches a project tree, coalesces bursts of edits into a single rebuild,
runs the build command, and keeps exactly one instance of the built
service running:
  - watchfiles-based watcher with ignore patterns applied before queuing
  - quiet-window debouncer; at most one build in flight, last trigger wins
  - process-group aware supervisor with graceful stop and forced kill
  - single-consumer control loop with a validated state machine
  - env/TOML driven settings (pydantic-settings), Rich status stream
"""

__version__ = "0.1.0"
__author__ = "CORVUSFORGE, LLC"
__description__ = "Continuous build-and-run supervisor"

from hotforge.config import HotforgeSettings
from hotforge.core.orchestrator import Orchestrator

__all__ = ["HotforgeSettings", "Orchestrator", "__version__"]
