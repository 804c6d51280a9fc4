"""
signal_logger — fan one logging call out to many named channels.

Public API:
    SignalLogger        — engine facade (debug/log/info/warn/error/success)
    Channel             — channel capability protocol
    ConsoleChannel      — terminal channel
    TelegramChannel     — Telegram Bot API channel
    LogLabel            — {name, value} display label
    Platform            — injected environment/side descriptor
    DispatchReport      — per-call outcome report
    MalformedCallError, DisabledChannelError, ChannelDeliveryError,
    InvalidChannelError, SignalLoggerError
"""

from signal_logger.channels.base import Channel
from signal_logger.channels.console import ConsoleChannel
from signal_logger.channels.telegram import TelegramChannel
from signal_logger.core.errors import (
    ChannelDeliveryError,
    DisabledChannelError,
    InvalidChannelError,
    MalformedCallError,
    SignalLoggerError,
)
from signal_logger.core.platform import Platform
from signal_logger.engine.logger import SignalLogger
from signal_logger.engine.models import (
    ChannelOutcome,
    DispatchReport,
    LogLabel,
    OutcomeStatus,
    Severity,
)

__version__ = "1.0.0"

__all__ = [
    "Channel",
    "ChannelDeliveryError",
    "ChannelOutcome",
    "ConsoleChannel",
    "DisabledChannelError",
    "DispatchReport",
    "InvalidChannelError",
    "LogLabel",
    "MalformedCallError",
    "OutcomeStatus",
    "Platform",
    "Severity",
    "SignalLogger",
    "SignalLoggerError",
    "TelegramChannel",
]
