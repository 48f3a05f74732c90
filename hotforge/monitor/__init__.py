"""hotforge status stream.

Modules
-------
renderer
    ``StatusRenderer`` writes loop transitions, build outcomes, diagnostics
    and service lifecycle events to a Rich console on stdout.
"""
