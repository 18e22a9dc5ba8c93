"""State/store layer.

This package is the single source of truth for how decoded telemetry, swap
preference changes and connection transitions are merged into the snapshot
consumers see.
"""
