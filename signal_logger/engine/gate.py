"""
gate.py — Enablement Gate.

Per channel, the first flag that is set wins:

    providers[<id>]["enabled"]   per-call, per-channel
    options["enabled"]           per-call
    channel.enabled              channel instance attribute
    SignalLogger(enabled=...)    engine construction
    True
"""

from __future__ import annotations

from typing import Any, Optional

from signal_logger.engine.models import NormalizedCall


def resolve_enabled(
    call: NormalizedCall,
    channel_id: str,
    channel: Any = None,
    engine_enabled: Optional[bool] = None,
) -> bool:
    """Return whether delivery to ``channel_id`` proceeds for this call."""
    channel_flag = call.overrides.get(channel_id, {}).get("enabled")
    if channel_flag is not None:
        return bool(channel_flag)

    if call.enabled is not None:
        return bool(call.enabled)

    instance_flag = getattr(channel, "enabled", None)
    if isinstance(instance_flag, bool):
        return instance_flag

    if engine_enabled is not None:
        return bool(engine_enabled)

    return True
