"""
models.py — Shared data structures for the dispatch engine.

Defines:
    • Severity        — the six severity methods
    • LogLabel        — {name, value} display label
    • NormalizedCall  — canonical form of one logging call
    • OutcomeStatus   — per-channel outcome state
    • ChannelOutcome  — what happened on one channel
    • DispatchReport  — all outcomes for one dispatched call

═══════════════════════════════════════════════════════════════════════════
CALL SHAPES
═══════════════════════════════════════════════════════════════════════════

    Bare            ["disk almost full", 93]
    Structured      {"messages": [...]}            unstyled
                    {"template": {...}}            styled
                    + "context", "providers", "enabled", "deduplicate"

    providers       {"<channel id>": {...partial override...}}
                    {"<channel id>": [...]}        array shorthand

Exactly one of messages/template is allowed per structured call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

# Keys that steer the engine and never reach a channel
CONTROL_KEYS = ("providers", "enabled", "deduplicate")


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class Severity(str, Enum):
    """Severity methods, in the order channels declare them."""
    DEBUG   = "debug"     # optional on channels
    LOG     = "log"
    INFO    = "info"
    WARN    = "warn"
    ERROR   = "error"
    SUCCESS = "success"


REQUIRED_OPERATIONS = (
    Severity.LOG,
    Severity.INFO,
    Severity.WARN,
    Severity.ERROR,
    Severity.SUCCESS,
)


class OutcomeStatus(str, Enum):
    """Per-channel outcome of one dispatch."""
    DELIVERED = "delivered"   # operation completed
    FAILED    = "failed"      # operation raised
    DISABLED  = "disabled"    # enablement chain resolved to False
    SKIPPED   = "skipped"     # channel lacks the operation


# ═══════════════════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════════════════

def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LogLabel:
    """A label rendered left to right in front of a log entry."""
    name: str
    value: Any

    @classmethod
    def coerce(cls, raw: Any) -> "LogLabel":
        """Accept a LogLabel, a {name, value} mapping or a (name, value) pair."""
        if isinstance(raw, LogLabel):
            return raw
        if isinstance(raw, Mapping):
            return cls(name=raw["name"], value=raw.get("value"))
        name, value = raw
        return cls(name=name, value=value)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "value": self.value}


@dataclass
class NormalizedCall:
    """
    Canonical form of one logging call.

    Attributes
    ----------
    payload : dict
        Call-level payload: exactly one of "messages" / "template", plus any
        other top-level fields (context, severity fields). Control keys are
        stripped.
    overrides : dict
        Channel id → partial override mapping. Array shorthand is stored
        as {"messages": [...]}.
    shorthand : frozenset
        Channel ids whose override was given as a bare message sequence.
    enabled : bool | None
        Call-level enablement flag.
    deduplicate : bool | dict | None
        Call-level deduplication flag.
    """
    payload: Dict[str, Any]
    overrides: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    shorthand: FrozenSet[str] = frozenset()
    enabled: Optional[bool] = None
    deduplicate: Any = None

    @property
    def is_styled(self) -> bool:
        return "template" in self.payload


@dataclass
class ChannelOutcome:
    """Record of what happened on one channel for one dispatch."""
    channel_id: str
    status: OutcomeStatus
    error: Optional[BaseException] = None
    completed_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel": self.channel_id,
            "status": self.status.value,
            "error": str(self.error) if self.error is not None else None,
            "completed_at": self.completed_at.isoformat(),
        }


@dataclass
class DispatchReport:
    """All per-channel outcomes of one dispatched call."""
    method: Severity
    outcomes: List[ChannelOutcome] = field(default_factory=list)
    number_of_calls: Optional[int] = None
    started_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None

    def _ids(self, status: OutcomeStatus) -> List[str]:
        return [o.channel_id for o in self.outcomes if o.status == status]

    @property
    def delivered(self) -> List[str]:
        return self._ids(OutcomeStatus.DELIVERED)

    @property
    def failed(self) -> List[str]:
        return self._ids(OutcomeStatus.FAILED)

    @property
    def disabled(self) -> List[str]:
        return self._ids(OutcomeStatus.DISABLED)

    @property
    def skipped(self) -> List[str]:
        return self._ids(OutcomeStatus.SKIPPED)

    def outcome(self, channel_id: str) -> Optional[ChannelOutcome]:
        for o in self.outcomes:
            if o.channel_id == channel_id:
                return o
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method.value,
            "number_of_calls": self.number_of_calls,
            "delivered": self.delivered,
            "failed": self.failed,
            "disabled": self.disabled,
            "skipped": self.skipped,
            "started_at": self.started_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
