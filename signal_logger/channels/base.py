"""
base.py — Channel capability contract.

A channel is any object with the five required severity operations and,
optionally, ``debug``. Operations take the resolved delivery dict and may
be plain functions or coroutines. An optional ``enabled`` attribute takes
part in the enablement chain.
"""

from __future__ import annotations

from typing import (
    Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, Union,
    runtime_checkable,
)

from signal_logger.core.errors import InvalidChannelError
from signal_logger.engine.models import REQUIRED_OPERATIONS, Severity

Delivery = Dict[str, Any]
OperationResult = Union[None, Awaitable[None]]
Operation = Callable[[Delivery], OperationResult]


@runtime_checkable
class Channel(Protocol):
    """Structural type of a channel (``debug`` is optional)."""

    def log(self, delivery: Delivery) -> OperationResult: ...

    def info(self, delivery: Delivery) -> OperationResult: ...

    def warn(self, delivery: Delivery) -> OperationResult: ...

    def error(self, delivery: Delivery) -> OperationResult: ...

    def success(self, delivery: Delivery) -> OperationResult: ...


def get_operation(channel: Any, method: Severity) -> Optional[Operation]:
    """Return the bound operation for ``method`` or None if absent."""
    operation = getattr(channel, method.value, None)
    return operation if callable(operation) else None


def validate_channel(channel_id: Any, channel: Any) -> None:
    """Raise InvalidChannelError if ``channel`` breaks the contract."""
    if not isinstance(channel_id, str) or not channel_id:
        raise InvalidChannelError(channel_id, "channel id must be a non-empty string")

    missing = [
        method.value for method in REQUIRED_OPERATIONS
        if get_operation(channel, method) is None
    ]
    if missing:
        raise InvalidChannelError(
            channel_id, f"missing operation(s): {', '.join(missing)}",
        )


def validate_registry(providers: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate every channel and return an insertion-ordered copy."""
    if not isinstance(providers, Mapping):
        raise InvalidChannelError(
            "providers", "expected a mapping of channel id to channel",
        )
    registry = dict(providers)
    for channel_id, channel in registry.items():
        validate_channel(channel_id, channel)
    return registry
