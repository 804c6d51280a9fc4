"""
Centralised error handling — exception hierarchy.

Provides:
    • Domain-specific exception classes
    • A stable error_code + details dict on every error
    • Per-channel outcome errors (never raised to callers)

Only MalformedCallError and InvalidChannelError are raised to callers.
DisabledChannelError and ChannelDeliveryError live inside
ChannelOutcome records produced by the dispatcher.

Usage:
    from signal_logger.core.errors import MalformedCallError

    raise MalformedCallError("'messages' or 'template' must be passed")
"""

from __future__ import annotations

from typing import Any, Dict, Optional


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class SignalLoggerError(Exception):
    """Base exception for all library errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


class MalformedCallError(SignalLoggerError, TypeError):
    """A logging call's options cannot be normalised."""

    def __init__(self, message: str, **details: Any):
        super().__init__(
            message=message,
            error_code="MALFORMED_CALL",
            details=details,
        )


class InvalidChannelError(SignalLoggerError, TypeError):
    """A registered channel does not satisfy the channel contract."""

    def __init__(self, channel_id: Any, message: str = ""):
        super().__init__(
            message=f"Channel {channel_id!r} is invalid: {message}",
            error_code="INVALID_CHANNEL",
            details={"channel": channel_id},
        )
        self.channel_id = channel_id


class DisabledChannelError(SignalLoggerError):
    """Delivery was not attempted because the channel resolved to disabled."""

    def __init__(self, channel_id: str, method: str):
        super().__init__(
            message=f"Channel '{channel_id}' is disabled for {method}",
            error_code="CHANNEL_DISABLED",
            details={"channel": channel_id, "method": method},
        )
        self.channel_id = channel_id
        self.method = method


class ChannelDeliveryError(SignalLoggerError):
    """A channel operation raised while delivering."""

    def __init__(self, channel_id: str, method: str, cause: BaseException):
        super().__init__(
            message=(
                f"Channel '{channel_id}' failed on {method}: "
                f"{type(cause).__name__}: {cause}"
            ),
            error_code="CHANNEL_DELIVERY_FAILED",
            details={
                "channel": channel_id,
                "method": method,
                "exception": type(cause).__name__,
            },
        )
        self.channel_id = channel_id
        self.method = method
        self.cause = cause
        self.__cause__ = cause
