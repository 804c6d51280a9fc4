"""
logger.py — SignalLogger, the engine facade.

Control flow for one call:

    severity method
        → normalize_call                    (MalformedCallError raised here)
        → Deduplicator.submit               (only when deduplication applies)
        → dispatch                          per channel: gate, resolve, invoke
        → DispatchReport

Usage:
    from signal_logger import ConsoleChannel, SignalLogger

    logger = SignalLogger(
        providers={"console": ConsoleChannel()},
        deduplicate={"interval": 250},
    )
    await logger.info({"template": {"title": "Deployed"}})
    await logger.error(["payment failed", exc])
"""

from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from signal_logger.channels.base import validate_registry
from signal_logger.core.config import settings
from signal_logger.core.errors import MalformedCallError
from signal_logger.core.platform import Platform
from signal_logger.engine.dedup import (
    Deduplicator,
    fingerprint,
    fingerprint_id,
    resolve_interval,
)
from signal_logger.engine.dispatcher import dispatch
from signal_logger.engine.models import (
    DispatchReport,
    LogLabel,
    NormalizedCall,
    Severity,
)
from signal_logger.engine.normalizer import normalize_call

logger = logging.getLogger(__name__)


class SignalLogger:
    """
    Fans each logging call out to every registered channel.

    Parameters
    ----------
    providers : mapping
        Channel id → channel. Fixed for the logger's lifetime.
    enabled : bool, optional
        Construction-level enablement (default: settings.LOGGER_ENABLED).
    deduplicate : bool | {"interval": ms}, optional
        Collapse identical calls within a window. True uses
        settings.DEDUPLICATE_INTERVAL_MS.
    platform : Platform, optional
        Source of the default labels. Detected on every dispatch if omitted.
    report_outcomes : bool, optional
        Log each channel outcome (default: settings.REPORT_OUTCOMES).
    """

    def __init__(
        self,
        providers: Mapping[str, Any],
        *,
        enabled: Optional[bool] = None,
        deduplicate: Any = None,
        platform: Optional[Platform] = None,
        report_outcomes: Optional[bool] = None,
    ):
        self._providers = MappingProxyType(validate_registry(providers))
        self._enabled = settings.LOGGER_ENABLED if enabled is None else enabled
        self._default_interval = settings.DEDUPLICATE_INTERVAL_MS
        self._interval = resolve_interval(deduplicate, self._default_interval)
        self._platform = platform
        self._report_outcomes = (
            settings.REPORT_OUTCOMES if report_outcomes is None else report_outcomes
        )
        self._deduplicator = Deduplicator(flush_callback=self._flush)

        logger.debug(
            "SignalLogger ready: channels=%s enabled=%s dedup_interval=%s",
            list(self._providers), self._enabled, self._interval,
        )

    # ── Introspection ──

    @property
    def providers(self) -> Mapping[str, Any]:
        return self._providers

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def deduplicate_interval(self) -> Optional[float]:
        """Window length in ms, or None when deduplication is off."""
        return self._interval

    @property
    def pending_count(self) -> int:
        return self._deduplicator.pending_count

    def default_labels(self) -> List[LogLabel]:
        platform = self._platform or Platform.detect()
        return platform.default_labels()

    # ── Severity methods ──

    async def debug(self, options: Any = None, **kwargs: Any) -> DispatchReport:
        return await self._emit(Severity.DEBUG, options, kwargs)

    async def log(self, options: Any = None, **kwargs: Any) -> DispatchReport:
        return await self._emit(Severity.LOG, options, kwargs)

    async def info(self, options: Any = None, **kwargs: Any) -> DispatchReport:
        return await self._emit(Severity.INFO, options, kwargs)

    async def warn(self, options: Any = None, **kwargs: Any) -> DispatchReport:
        return await self._emit(Severity.WARN, options, kwargs)

    async def error(self, options: Any = None, **kwargs: Any) -> DispatchReport:
        return await self._emit(Severity.ERROR, options, kwargs)

    async def success(self, options: Any = None, **kwargs: Any) -> DispatchReport:
        return await self._emit(Severity.SUCCESS, options, kwargs)

    # ── Lifecycle ──

    async def flush(self) -> None:
        """Dispatch every open dedup window now."""
        await self._deduplicator.flush_all()

    async def __aenter__(self) -> "SignalLogger":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.flush()

    # ── Internals ──

    def _call_interval(self, call: NormalizedCall) -> Optional[float]:
        if call.deduplicate is None:
            return self._interval
        default = self._interval if self._interval is not None else self._default_interval
        try:
            return resolve_interval(call.deduplicate, default)
        except ValueError as exc:
            raise MalformedCallError(str(exc), field="deduplicate") from exc

    async def _emit(
        self,
        method: Severity,
        options: Any,
        kwargs: Dict[str, Any],
    ) -> DispatchReport:
        if kwargs:
            if options is not None:
                raise MalformedCallError(
                    "Pass logging options positionally or as keywords, not both"
                )
            options = kwargs

        call = normalize_call(options)
        self._warn_unknown_overrides(call)
        interval = self._call_interval(call)

        if interval is None:
            return await self._dispatch(method, call)

        future = self._deduplicator.submit(method, call, interval)
        return await asyncio.shield(future)

    def _warn_unknown_overrides(self, call: NormalizedCall) -> None:
        for channel_id in call.overrides:
            if channel_id not in self._providers:
                logger.warning(
                    "Override for unregistered channel '%s' ignored", channel_id,
                    extra={"channel": channel_id},
                )

    async def _flush(
        self,
        method: Severity,
        call: NormalizedCall,
        count: int,
    ) -> DispatchReport:
        return await self._dispatch(
            method, call,
            annotations={"number_of_calls": count},
            fingerprint=fingerprint_id(fingerprint(method, call)),
        )

    async def _dispatch(
        self,
        method: Severity,
        call: NormalizedCall,
        annotations: Optional[Mapping[str, Any]] = None,
        fingerprint: Optional[str] = None,
    ) -> DispatchReport:
        return await dispatch(
            self._providers,
            method,
            call,
            self.default_labels(),
            engine_enabled=self._enabled,
            annotations=annotations,
            report_outcomes=self._report_outcomes,
            fingerprint=fingerprint,
        )
