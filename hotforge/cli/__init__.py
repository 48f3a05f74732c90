"""hotforge CLI — Typer-based command-line interface.

Provides the ``hotforge`` command with subcommands for running the
watch-build-run loop, running a single build, and showing the effective
configuration.

All output uses Rich for formatted terminal display.
"""
