"""
Diagnostic logging configuration for the library itself.

Provides:
    • JSON-formatted logs for production (machine-parseable)
    • Pretty console logs for development (human-readable)
    • Dispatch-scoped context (method, fingerprint)

The library only configures the "signal_logger" logger namespace and
never touches the root logger.

Usage:
    import logging
    from signal_logger.core.logging_config import setup_logging

    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("Dispatched", extra={"channel": "console"})
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

from signal_logger.core.config import settings

LIBRARY_LOGGER = "signal_logger"

# ── Context variable for dispatch-scoped data ──
_dispatch_context: ContextVar[Dict[str, Any]] = ContextVar(
    "dispatch_context", default={}
)


def set_dispatch_context(**kwargs: Any) -> Token:
    """Set dispatch-scoped log context (call before fan-out)."""
    return _dispatch_context.set(kwargs)


def reset_dispatch_context(token: Token) -> None:
    """Restore the context that was current before set_dispatch_context."""
    _dispatch_context.reset(token)


def get_dispatch_context() -> Dict[str, Any]:
    """Get current dispatch context."""
    return _dispatch_context.get()


# ── JSON Formatter (Production) ──

class JSONFormatter(logging.Formatter):
    """Machine-parseable JSON log output for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        ctx = get_dispatch_context()
        if ctx:
            log_entry["context"] = ctx

        for key in ("channel", "method", "status", "number_of_calls",
                    "fingerprint", "duration_ms"):
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(log_entry, default=str)


# ── Pretty Formatter (Development) ──

class PrettyFormatter(logging.Formatter):
    """Coloured human-readable format for local development."""

    COLORS = {
        "DEBUG": "\033[36m",    # Cyan
        "INFO": "\033[32m",     # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",    # Red
        "CRITICAL": "\033[35m", # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        ts = self.formatTime(record, "%H:%M:%S")
        msg = record.getMessage()

        ctx = get_dispatch_context()
        ctx_str = ""
        if ctx.get("method"):
            ctx_str = f" [{ctx['method']}]"

        formatted = (
            f"{color}{ts} {record.levelname:8s}{self.RESET}"
            f"{ctx_str} {record.name}: {msg}"
        )

        if record.exc_info and record.exc_info[1]:
            formatted += f"\n  {type(record.exc_info[1]).__name__}: {record.exc_info[1]}"

        return formatted


# ── Setup ──

def setup_logging(
    level: Optional[str] = None,
    *,
    json_format: Optional[bool] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Configure the library logger based on settings."""
    lib_logger = logging.getLogger(LIBRARY_LOGGER)
    level_name = (level or settings.LOG_LEVEL).upper()
    lib_logger.setLevel(getattr(logging, level_name, logging.INFO))

    # Remove existing handlers
    lib_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)

    if json_format is None:
        json_format = settings.LOG_FORMAT == "json" or settings.is_production

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(PrettyFormatter())

    lib_logger.addHandler(handler)
    lib_logger.propagate = False

    # Quieten noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return lib_logger
