"""
Shared fixtures for the signal_logger test suite.

SpyChannel records every invocation (method, delivery, loop time) and can
be told to raise synchronously, fail asynchronously, or stall.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from signal_logger.core.platform import Platform

PLATFORM = Platform(environment="test", side="server")


class SpyChannel:
    """Channel double that records every invocation."""

    def __init__(
        self,
        *,
        is_async: bool = True,
        raises: Optional[BaseException] = None,
        delay: float = 0.0,
        with_debug: bool = True,
        enabled: Optional[bool] = None,
    ):
        self.calls: List[Tuple[str, Dict[str, Any], float]] = []
        self._is_async = is_async
        self._raises = raises
        self._delay = delay
        if enabled is not None:
            self.enabled = enabled
        if with_debug:
            self.debug = self._operation("debug")
        self.log = self._operation("log")
        self.info = self._operation("info")
        self.warn = self._operation("warn")
        self.error = self._operation("error")
        self.success = self._operation("success")

    def _record(self, method: str, delivery: Dict[str, Any]) -> None:
        try:
            now = asyncio.get_running_loop().time()
        except RuntimeError:
            now = 0.0
        self.calls.append((method, delivery, now))

    def _operation(self, method: str):
        if self._is_async:
            async def operation(delivery: Dict[str, Any]) -> None:
                self._record(method, delivery)
                if self._delay:
                    await asyncio.sleep(self._delay)
                if self._raises is not None:
                    raise self._raises
        else:
            def operation(delivery: Dict[str, Any]) -> None:
                self._record(method, delivery)
                if self._raises is not None:
                    raise self._raises
        return operation

    @property
    def methods(self) -> List[str]:
        return [method for method, _, _ in self.calls]

    @property
    def deliveries(self) -> List[Dict[str, Any]]:
        return [delivery for _, delivery, _ in self.calls]


@pytest.fixture
def platform() -> Platform:
    return PLATFORM


@pytest.fixture
def spy() -> SpyChannel:
    return SpyChannel()
