"""
dispatcher.py — Dispatch Coordinator.

Fans one normalised call out to every registered channel:

    for each channel, in registration order
        no operation for this severity  → SKIPPED   (not invoked)
        enablement chain says False     → DISABLED  (not invoked)
        otherwise resolve its delivery and invoke the operation
            raises synchronously        → FAILED
            returns an awaitable        → awaited concurrently
            returns anything else       → DELIVERED

All awaitables are gathered together; the coordinator waits for every
one and never short-circuits. Channel exceptions become FAILED outcomes
carrying a ChannelDeliveryError, including a CancelledError raised by the
channel's own work. Only cancellation of the dispatch itself and other
BaseExceptions (interrupts, SystemExit) reach the caller.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, List, Mapping, Optional, Sequence, Tuple

from signal_logger.channels.base import get_operation
from signal_logger.core.errors import ChannelDeliveryError, DisabledChannelError
from signal_logger.core.logging_config import (
    reset_dispatch_context,
    set_dispatch_context,
)
from signal_logger.engine.gate import resolve_enabled
from signal_logger.engine.models import (
    ChannelOutcome,
    DispatchReport,
    LogLabel,
    NormalizedCall,
    OutcomeStatus,
    Severity,
)
from signal_logger.engine.resolver import resolve_delivery

logger = logging.getLogger(__name__)


# Failures a channel can produce without taking the dispatch down with it
CHANNEL_FAILURES = (Exception, asyncio.CancelledError)


def _failure(channel_id: str, method: Severity, exc: BaseException) -> ChannelOutcome:
    logger.warning(
        "Channel '%s' failed on %s: %s: %s",
        channel_id, method.value, type(exc).__name__, exc,
        extra={"channel": channel_id, "method": method.value},
    )
    return ChannelOutcome(
        channel_id=channel_id,
        status=OutcomeStatus.FAILED,
        error=ChannelDeliveryError(channel_id, method.value, exc),
    )


def _report_outcomes(report: DispatchReport) -> None:
    for outcome in report.outcomes:
        logger.info(
            "%s → %s: %s%s",
            report.method.value, outcome.channel_id, outcome.status.value,
            f" ({outcome.error})" if outcome.error is not None else "",
            extra={
                "channel": outcome.channel_id,
                "method": report.method.value,
                "status": outcome.status.value,
            },
        )


async def dispatch(
    registry: Mapping[str, Any],
    method: Severity,
    call: NormalizedCall,
    default_labels: Sequence[LogLabel],
    *,
    engine_enabled: Optional[bool] = None,
    annotations: Optional[Mapping[str, Any]] = None,
    report_outcomes: bool = False,
    fingerprint: Optional[str] = None,
) -> DispatchReport:
    """
    Invoke ``method`` on every channel and collect one outcome per channel.

    Parameters
    ----------
    registry : mapping
        Channel id → channel, in registration order.
    method : Severity
    call : NormalizedCall
    default_labels : sequence of LogLabel
    engine_enabled : bool, optional
        Construction-level enablement flag.
    annotations : mapping, optional
        Extra call-level fields (number_of_calls).
    report_outcomes : bool
        Log every outcome at INFO once all have settled.
    fingerprint : str, optional
        Dedup window tag added to the log context.

    Returns
    -------
    DispatchReport
    """
    context = {"method": method.value}
    if fingerprint is not None:
        context["fingerprint"] = fingerprint
    token = set_dispatch_context(**context)
    try:
        return await _fan_out(
            registry, method, call, default_labels,
            engine_enabled=engine_enabled,
            annotations=annotations,
            report_outcomes=report_outcomes,
        )
    finally:
        reset_dispatch_context(token)


async def _fan_out(
    registry: Mapping[str, Any],
    method: Severity,
    call: NormalizedCall,
    default_labels: Sequence[LogLabel],
    *,
    engine_enabled: Optional[bool],
    annotations: Optional[Mapping[str, Any]],
    report_outcomes: bool,
) -> DispatchReport:
    started = time.perf_counter()

    report = DispatchReport(method=method)
    if annotations and "number_of_calls" in annotations:
        report.number_of_calls = annotations["number_of_calls"]

    slots: List[Optional[ChannelOutcome]] = []
    pending: List[Tuple[int, str, Awaitable[Any]]] = []

    for channel_id, channel in registry.items():
        operation = get_operation(channel, method)

        if operation is None:
            logger.debug(
                "Channel '%s' has no %s operation, skipped",
                channel_id, method.value,
            )
            slots.append(ChannelOutcome(channel_id, OutcomeStatus.SKIPPED))
            continue

        if not resolve_enabled(call, channel_id, channel, engine_enabled):
            slots.append(ChannelOutcome(
                channel_id,
                OutcomeStatus.DISABLED,
                error=DisabledChannelError(channel_id, method.value),
            ))
            continue

        delivery = resolve_delivery(
            call, channel_id, default_labels, annotations=annotations,
        )

        try:
            result = operation(delivery)
        except CHANNEL_FAILURES as exc:
            slots.append(_failure(channel_id, method, exc))
            continue

        if inspect.isawaitable(result):
            pending.append((len(slots), channel_id, result))
            slots.append(None)
        else:
            slots.append(ChannelOutcome(channel_id, OutcomeStatus.DELIVERED))

    if pending:
        results = await asyncio.gather(
            *(awaitable for _, _, awaitable in pending),
            return_exceptions=True,
        )
        for (index, channel_id, _), result in zip(pending, results):
            if isinstance(result, CHANNEL_FAILURES):
                slots[index] = _failure(channel_id, method, result)
            elif isinstance(result, BaseException):
                raise result
            else:
                slots[index] = ChannelOutcome(channel_id, OutcomeStatus.DELIVERED)

    report.outcomes = [outcome for outcome in slots if outcome is not None]
    report.completed_at = datetime.now(timezone.utc)
    duration_ms = round((time.perf_counter() - started) * 1000, 1)

    logger.debug(
        "Dispatched %s to %d channel(s) in %.1f ms: %d delivered, %d failed, "
        "%d disabled, %d skipped",
        method.value, len(report.outcomes),
        duration_ms,
        len(report.delivered), len(report.failed),
        len(report.disabled), len(report.skipped),
        extra={"method": method.value, "duration_ms": duration_ms},
    )

    if report_outcomes:
        _report_outcomes(report)

    return report
