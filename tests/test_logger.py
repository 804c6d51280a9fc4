"""
Tests for the SignalLogger facade.

Covers:
    • Construction (registry validation, immutability, defaults)
    • Severity methods end to end (bare, structured, keyword forms)
    • Malformed calls fail before any channel runs
    • Enablement precedence and label merge through the facade
    • Deduplication timing and aggregation
    • Failure isolation, flush on exit
    • Log context scoped to each call, browser-side default label
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from signal_logger import (
    InvalidChannelError,
    LogLabel,
    MalformedCallError,
    OutcomeStatus,
    SignalLogger,
)
from signal_logger.core.logging_config import get_dispatch_context
from tests.conftest import PLATFORM, SpyChannel

DEFAULTS = PLATFORM.default_labels()


def _make_logger(**channels_and_options) -> SignalLogger:
    options = {
        key: channels_and_options.pop(key)
        for key in ("enabled", "deduplicate", "report_outcomes")
        if key in channels_and_options
    }
    return SignalLogger(providers=channels_and_options, platform=PLATFORM, **options)


# ═══════════════════════════════════════════════════════════════════════════
# Construction
# ═══════════════════════════════════════════════════════════════════════════

class TestConstruction:
    """Registry validation and defaults."""

    def test_registry_is_read_only(self):
        logger = _make_logger(a=SpyChannel())
        with pytest.raises(TypeError):
            logger.providers["b"] = SpyChannel()
        assert list(logger.providers) == ["a"]

    def test_registry_copied_from_caller(self):
        providers = {"a": SpyChannel()}
        logger = SignalLogger(providers=providers, platform=PLATFORM)
        providers["b"] = SpyChannel()
        assert list(logger.providers) == ["a"]

    def test_missing_required_operation_rejected(self):
        class NoSuccess:
            def log(self, d): ...
            def info(self, d): ...
            def warn(self, d): ...
            def error(self, d): ...

        with pytest.raises(InvalidChannelError) as exc_info:
            SignalLogger(providers={"x": NoSuccess()})
        assert "success" in str(exc_info.value)

    def test_empty_channel_id_rejected(self):
        with pytest.raises(InvalidChannelError):
            SignalLogger(providers={"": SpyChannel()})

    def test_providers_must_be_mapping(self):
        with pytest.raises(InvalidChannelError):
            SignalLogger(providers=[SpyChannel()])

    def test_debug_is_optional(self):
        SignalLogger(providers={"x": SpyChannel(with_debug=False)})

    def test_defaults(self):
        logger = _make_logger(a=SpyChannel())
        assert logger.enabled is True
        assert logger.deduplicate_interval is None

    def test_deduplicate_true_uses_default_interval(self):
        assert _make_logger(a=SpyChannel(), deduplicate=True).deduplicate_interval == 100

    def test_deduplicate_explicit_interval(self):
        logger = _make_logger(a=SpyChannel(), deduplicate={"interval": 50})
        assert logger.deduplicate_interval == 50

    def test_invalid_deduplicate_option(self):
        with pytest.raises(ValueError):
            _make_logger(a=SpyChannel(), deduplicate="often")

    def test_injected_platform_labels(self):
        logger = _make_logger(a=SpyChannel())
        assert logger.default_labels() == [
            LogLabel("Environment", "test"), LogLabel("Side", "server"),
        ]

    def test_detected_platform_read_per_call(self, monkeypatch):
        logger = SignalLogger(providers={"a": SpyChannel()})
        monkeypatch.setenv("ENVIRONMENT", "staging")
        assert logger.default_labels()[0] == LogLabel("Environment", "staging")
        monkeypatch.setenv("ENVIRONMENT", "production")
        assert logger.default_labels()[0] == LogLabel("Environment", "production")


# ═══════════════════════════════════════════════════════════════════════════
# Calls
# ═══════════════════════════════════════════════════════════════════════════

class TestCalls:
    """Severity methods route to the matching channel operation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method", ["debug", "log", "info", "warn", "error", "success"],
    )
    async def test_each_severity(self, method):
        spy = SpyChannel()
        logger = _make_logger(a=spy)
        report = await getattr(logger, method)(["x"])
        assert spy.methods == [method]
        assert report.delivered == ["a"]

    @pytest.mark.asyncio
    async def test_bare_messages_identical_everywhere(self):
        a, b = SpyChannel(), SpyChannel(is_async=False)
        await _make_logger(a=a, b=b).log(["m", 1])
        assert a.deliveries == b.deliveries == [{"messages": ["m", 1], "labels": DEFAULTS}]

    @pytest.mark.asyncio
    async def test_keyword_form(self):
        spy = SpyChannel()
        await _make_logger(a=spy).info(template={"title": "T"}, context={"k": 1})
        assert spy.deliveries[0] == {
            "template": {"title": "T", "labels": DEFAULTS},
            "context": {"k": 1},
        }

    @pytest.mark.asyncio
    async def test_positional_and_keyword_together_rejected(self):
        spy = SpyChannel()
        with pytest.raises(MalformedCallError):
            await _make_logger(a=spy).info(["x"], template={})
        assert spy.calls == []

    @pytest.mark.asyncio
    async def test_malformed_call_invokes_nothing(self):
        spy = SpyChannel()
        logger = _make_logger(a=spy)
        with pytest.raises(MalformedCallError):
            await logger.info({"context": {"a": 1}})
        with pytest.raises(MalformedCallError):
            await logger.warn({"messages": ["m"], "template": {}})
        assert spy.calls == []

    @pytest.mark.asyncio
    async def test_malformed_call_rejected_with_dedup(self):
        spy = SpyChannel()
        logger = _make_logger(a=spy, deduplicate=True)
        with pytest.raises(MalformedCallError):
            await logger.info({})
        assert logger.pending_count == 0

    @pytest.mark.asyncio
    async def test_invalid_call_deduplicate_option(self):
        with pytest.raises(MalformedCallError):
            await _make_logger(a=SpyChannel()).info({"messages": ["x"], "deduplicate": "x"})

    @pytest.mark.asyncio
    async def test_scenario_disabled_channel(self):
        a, b = SpyChannel(delay=0.02), SpyChannel()
        report = await _make_logger(a=a, b=b).info({
            "template": {"title": "T"},
            "providers": {"b": {"enabled": False}},
        })
        assert a.deliveries == [{"template": {"title": "T", "labels": DEFAULTS}}]
        assert b.calls == []
        assert report.outcome("a").status is OutcomeStatus.DELIVERED
        assert report.outcome("b").status is OutcomeStatus.DISABLED

    @pytest.mark.asyncio
    async def test_label_merge_through_facade(self):
        a, b = SpyChannel(), SpyChannel()
        await _make_logger(a=a, b=b).warn({
            "template": {"labels": [{"name": "A", "value": 1}]},
            "providers": {"b": {"template": {"labels": [{"name": "A", "value": 2}]}}},
        })
        labels = b.deliveries[0]["template"]["labels"]
        assert LogLabel("A", 2) in labels
        assert labels.count(LogLabel("Environment", "test")) == 1
        assert labels.count(LogLabel("Side", "server")) == 1
        assert LogLabel("A", 1) in a.deliveries[0]["template"]["labels"]

    @pytest.mark.asyncio
    async def test_unknown_override_warns(self, caplog):
        spy = SpyChannel()
        with caplog.at_level("WARNING", logger="signal_logger"):
            await _make_logger(a=spy).info({"messages": ["x"], "providers": {"zz": ["y"]}})
        assert spy.methods == ["info"]
        assert any("zz" in r.getMessage() for r in caplog.records)


class TestEnablementPrecedence:
    """Channel > call > engine."""

    @pytest.mark.asyncio
    async def test_call_level_wins_over_construction(self):
        spy = SpyChannel()
        await _make_logger(a=spy, enabled=False).info({"messages": ["x"], "enabled": True})
        assert spy.methods == ["info"]

    @pytest.mark.asyncio
    async def test_channel_level_wins_over_call(self):
        spy = SpyChannel()
        report = await _make_logger(a=spy, enabled=False).info({
            "messages": ["x"],
            "enabled": True,
            "providers": {"a": {"enabled": False}},
        })
        assert spy.calls == []
        assert report.disabled == ["a"]

    @pytest.mark.asyncio
    async def test_construction_disabled(self):
        spy = SpyChannel()
        await _make_logger(a=spy, enabled=False).info(["x"])
        assert spy.calls == []

    @pytest.mark.asyncio
    async def test_one_disabled_channel_does_not_block_others(self):
        a, b, c = SpyChannel(), SpyChannel(enabled=False), SpyChannel()
        report = await _make_logger(a=a, b=b, c=c).info(["x"])
        assert report.delivered == ["a", "c"]
        assert report.disabled == ["b"]


class TestFailureIsolation:
    """The overall call settles even when channels fail."""

    @pytest.mark.asyncio
    async def test_sync_failure_does_not_reject(self):
        bad = SpyChannel(is_async=False, raises=RuntimeError("no credentials"))
        good = SpyChannel()
        report = await _make_logger(bad=bad, good=good).error({
            "template": {"error": RuntimeError("original")},
        })
        assert bad.methods == ["error"]
        assert good.methods == ["error"]
        assert report.failed == ["bad"]
        assert report.delivered == ["good"]

    @pytest.mark.asyncio
    async def test_channel_cancelled_error_does_not_reject(self):
        bad = SpyChannel(raises=asyncio.CancelledError())
        good = SpyChannel(delay=0.01)
        report = await _make_logger(bad=bad, good=good).info(["x"])
        assert report.failed == ["bad"]
        assert report.delivered == ["good"]

    @pytest.mark.asyncio
    async def test_channel_cancelled_error_does_not_reach_collapsed_callers(self):
        bad = SpyChannel(raises=asyncio.CancelledError())
        good = SpyChannel()
        logger = _make_logger(bad=bad, good=good, deduplicate={"interval": 10})
        first, second = await asyncio.gather(logger.info(["x"]), logger.info(["x"]))
        assert first is second
        assert first.failed == ["bad"]
        assert first.delivered == ["good"]
        assert first.number_of_calls == 2


# ═══════════════════════════════════════════════════════════════════════════
# Deduplication through the facade
# ═══════════════════════════════════════════════════════════════════════════

class TestDeduplication:
    """Identical calls inside a window reach channels once."""

    @pytest.mark.asyncio
    async def test_three_calls_one_delivery(self):
        spy = SpyChannel()
        logger = _make_logger(a=spy, deduplicate={"interval": 200})
        loop = asyncio.get_running_loop()
        start = loop.time()
        call = {"template": {"title": "disk full"}}

        tasks = [asyncio.create_task(logger.info(call))]
        await asyncio.sleep(0.04)
        tasks.append(asyncio.create_task(logger.info(call)))
        await asyncio.sleep(0.04)
        tasks.append(asyncio.create_task(logger.info(call)))

        reports = await asyncio.gather(*tasks)

        assert len(spy.calls) == 1
        _, delivery, invoked_at = spy.calls[0]
        assert delivery["number_of_calls"] == 3
        assert 0.18 <= invoked_at - start < 0.35
        assert reports[0] is reports[1] is reports[2]
        assert reports[0].number_of_calls == 3

        # after the window closed
        await asyncio.sleep(0.1)
        report = await logger.info(call)
        assert len(spy.calls) == 2
        assert spy.deliveries[1]["number_of_calls"] == 1
        assert report.number_of_calls == 1

    @pytest.mark.asyncio
    async def test_first_call_overrides_flushed(self):
        spy = SpyChannel()
        logger = _make_logger(a=spy, deduplicate={"interval": 50})
        await asyncio.gather(
            logger.log({"messages": ["x"], "providers": {"a": ["first"]}}),
            logger.log({"messages": ["x"], "providers": {"a": ["second"]}}),
        )
        assert spy.deliveries == [
            {"messages": ["first"], "labels": DEFAULTS, "number_of_calls": 2},
        ]

    @pytest.mark.asyncio
    async def test_different_severities_not_collapsed(self):
        spy = SpyChannel()
        logger = _make_logger(a=spy, deduplicate={"interval": 30})
        await asyncio.gather(logger.info(["x"]), logger.warn(["x"]))
        assert sorted(spy.methods) == ["info", "warn"]

    @pytest.mark.asyncio
    async def test_disabled_by_default(self):
        spy = SpyChannel()
        logger = _make_logger(a=spy)
        await asyncio.gather(logger.info(["x"]), logger.info(["x"]))
        assert len(spy.calls) == 2
        assert all("number_of_calls" not in d for d in spy.deliveries)

    @pytest.mark.asyncio
    async def test_call_level_opt_out(self):
        spy = SpyChannel()
        logger = _make_logger(a=spy, deduplicate={"interval": 10_000})
        report = await logger.info({"messages": ["x"], "deduplicate": False})
        assert report.number_of_calls is None
        assert logger.pending_count == 0

    @pytest.mark.asyncio
    async def test_call_level_opt_in(self):
        spy = SpyChannel()
        logger = _make_logger(a=spy)
        call = {"messages": ["x"], "deduplicate": {"interval": 30}}
        await asyncio.gather(logger.info(call), logger.info(call))
        assert len(spy.calls) == 1
        assert spy.deliveries[0]["number_of_calls"] == 2

    @pytest.mark.asyncio
    async def test_flush_dispatches_pending(self):
        spy = SpyChannel()
        logger = _make_logger(a=spy, deduplicate={"interval": 10_000})
        task = asyncio.create_task(logger.info(["x"]))
        await asyncio.sleep(0)
        assert logger.pending_count == 1

        await logger.flush()

        report = await task
        assert report.delivered == ["a"]
        assert spy.deliveries[0]["number_of_calls"] == 1

    @pytest.mark.asyncio
    async def test_context_manager_flushes(self):
        spy = SpyChannel()
        async with _make_logger(a=spy, deduplicate={"interval": 10_000}) as logger:
            task = asyncio.create_task(logger.success(["done"]))
            await asyncio.sleep(0)
        await task
        assert spy.methods == ["success"]

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_window(self):
        spy = SpyChannel()
        logger = _make_logger(a=spy, deduplicate={"interval": 50})
        first = asyncio.create_task(logger.info(["x"]))
        second = asyncio.create_task(logger.info(["x"]))
        await asyncio.sleep(0)
        first.cancel()
        report = await second
        assert report.number_of_calls == 2
        assert len(spy.calls) == 1


class TestLogContext:
    """Library log context does not leak into the caller."""

    @pytest.mark.asyncio
    async def test_context_not_left_behind(self):
        before = get_dispatch_context()
        await _make_logger(a=SpyChannel()).info(["x"])
        assert get_dispatch_context() == before

    @pytest.mark.asyncio
    async def test_flush_tags_context_with_fingerprint(self):
        seen = []

        class Recorder(SpyChannel):
            def __init__(self):
                super().__init__()
                inner = self.warn

                async def warn(delivery):
                    seen.append(dict(get_dispatch_context()))
                    await inner(delivery)
                self.warn = warn

        logger = _make_logger(a=Recorder(), deduplicate={"interval": 10})
        await logger.warn(["x"])
        assert seen[0]["method"] == "warn"
        assert len(seen[0]["fingerprint"]) == 8


class TestDetectedPlatform:
    """Default labels without an injected platform."""

    @pytest.mark.asyncio
    async def test_browser_runtime_labels_side_client(self, monkeypatch):
        spy = SpyChannel()
        logger = SignalLogger(providers={"a": spy})
        monkeypatch.setenv("ENVIRONMENT", "preview")
        monkeypatch.setattr(
            "signal_logger.core.platform.sys", SimpleNamespace(platform="emscripten"),
        )
        await logger.info(["x"])
        assert spy.deliveries[0]["labels"] == [
            LogLabel("Environment", "preview"), LogLabel("Side", "client"),
        ]
