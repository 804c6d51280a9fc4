"""
dedup.py — Deduplication Window.

State machine per fingerprint:

    Idle ──first call──▶ Collecting ──timer fires──▶ Idle
                          │    ▲
                          └────┘ identical call: count += 1

    • The window is anchored at the first occurrence; later calls never
      reset the timer.
    • The first call's NormalizedCall is the one flushed.
    • On expiry the entry is removed first, then the flush callback runs
      with number_of_calls = count.
    • Every caller collapsed into a window awaits the same future, which
      resolves to the flush result.

Fingerprint = (severity, structural key of the call-level payload plus
the call-level enabled flag). Channel overrides and the deduplicate flag
are excluded.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import (
    Any, Awaitable, Callable, Dict, Hashable, List, Mapping, Optional, Set,
    Tuple,
)

from signal_logger.engine.models import LogLabel, NormalizedCall, Severity

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 100

FlushCallback = Callable[[Severity, NormalizedCall, int], Awaitable[Any]]
Fingerprint = Tuple[str, Hashable]


# ═══════════════════════════════════════════════════════════════════════════
# Fingerprinting
# ═══════════════════════════════════════════════════════════════════════════

def _freeze(value: Any) -> Hashable:
    """Structural, hashable key for an arbitrary payload value."""
    if isinstance(value, Mapping):
        return (
            "map",
            tuple(sorted(
                ((repr(k), _freeze(v)) for k, v in value.items()),
                key=lambda item: item[0],
            )),
        )
    if isinstance(value, (list, tuple)):
        return ("seq", tuple(_freeze(v) for v in value))
    if isinstance(value, (set, frozenset)):
        return ("set", tuple(sorted(repr(_freeze(v)) for v in value)))
    if isinstance(value, LogLabel):
        return ("label", _freeze(value.name), _freeze(value.value))
    if isinstance(value, BaseException):
        return ("exc", type(value).__qualname__, _freeze(value.args))
    try:
        hash(value)
    except TypeError:
        return ("repr", type(value).__qualname__, repr(value))
    return ("val", type(value).__qualname__, value)


def fingerprint(method: Severity, call: NormalizedCall) -> Fingerprint:
    """Identify calls that count as the same logical event."""
    return (method.value, _freeze({"payload": call.payload, "enabled": call.enabled}))


def fingerprint_id(key: Fingerprint) -> str:
    """Short hex tag of a fingerprint for log correlation (per process)."""
    return f"{hash(key) & 0xFFFFFFFF:08x}"


def resolve_interval(
    option: Any,
    default_ms: float = DEFAULT_INTERVAL_MS,
) -> Optional[float]:
    """
    Map a deduplicate option to an interval in milliseconds.

    None / False → None (disabled); True → ``default_ms``;
    {"interval": ms} → ms.
    """
    if option is None or option is False:
        return None
    if option is True:
        return default_ms
    if isinstance(option, Mapping):
        interval = option.get("interval", default_ms)
        if interval is None:
            return default_ms
        valid = (
            isinstance(interval, (int, float))
            and not isinstance(interval, bool)
            and interval >= 0
        )
        if not valid:
            raise ValueError(
                f"deduplicate interval must be a non-negative number, got {interval!r}"
            )
        return interval
    raise ValueError(
        f"deduplicate must be a bool or {{'interval': ms}}, got {option!r}"
    )


# ═══════════════════════════════════════════════════════════════════════════
# Window State
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class DedupEntry:
    """Open window for one fingerprint."""
    method: Severity
    call: NormalizedCall
    future: "asyncio.Future[Any]"
    count: int = 1
    timer: Optional[asyncio.TimerHandle] = None


@dataclass
class Deduplicator:
    """
    Collapses fingerprint-equal calls arriving within a window.

    All state is touched from the event loop thread only.
    """
    flush_callback: FlushCallback
    _entries: Dict[Fingerprint, DedupEntry] = field(default_factory=dict, init=False)
    _tasks: Set["asyncio.Task[Any]"] = field(default_factory=set, init=False)

    @property
    def pending_count(self) -> int:
        return len(self._entries)

    def submit(
        self,
        method: Severity,
        call: NormalizedCall,
        interval_ms: float,
    ) -> "asyncio.Future[Any]":
        """Record a call; return the future of its window's flush."""
        key = fingerprint(method, call)
        entry = self._entries.get(key)

        if entry is not None:
            entry.count += 1
            logger.debug(
                "Collapsed %s call into open window (count=%d)",
                method.value, entry.count,
                extra={
                    "method": method.value,
                    "number_of_calls": entry.count,
                    "fingerprint": fingerprint_id(key),
                },
            )
            return entry.future

        loop = asyncio.get_running_loop()
        entry = DedupEntry(method=method, call=call, future=loop.create_future())
        entry.timer = loop.call_later(interval_ms / 1000.0, self._expire, key)
        self._entries[key] = entry
        logger.debug(
            "Opened %.0f ms dedup window for %s", interval_ms, method.value,
            extra={"method": method.value, "fingerprint": fingerprint_id(key)},
        )
        return entry.future

    def _expire(self, key: Fingerprint) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        self._start_flush(entry)

    def _start_flush(self, entry: DedupEntry) -> "asyncio.Task[Any]":
        logger.debug(
            "Flushing %s window (number_of_calls=%d)",
            entry.method.value, entry.count,
            extra={"method": entry.method.value, "number_of_calls": entry.count},
        )
        task = asyncio.ensure_future(
            self.flush_callback(entry.method, entry.call, entry.count)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(lambda done: self._settle(entry.future, done))
        return task

    @staticmethod
    def _settle(future: "asyncio.Future[Any]", task: "asyncio.Task[Any]") -> None:
        if future.done():
            return
        if task.cancelled():
            future.cancel()
        elif task.exception() is not None:
            future.set_exception(task.exception())
        else:
            future.set_result(task.result())

    async def flush_all(self) -> List[Any]:
        """Close every open window now and wait for all in-flight flushes."""
        entries = list(self._entries.values())
        self._entries.clear()

        for entry in entries:
            if entry.timer is not None:
                entry.timer.cancel()
            self._start_flush(entry)

        tasks = list(self._tasks)
        if not tasks:
            return []
        return await asyncio.gather(*tasks, return_exceptions=True)
