"""Ingestion layer.

Turns raw radio payloads into telemetry records and answers the matching
questions (is this our device, our service, our control characteristic).
Nothing here touches state; the state store merges what this layer produces.
"""

__all__: list[str] = []
