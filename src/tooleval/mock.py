"""Deterministic tool mocks for eval cases."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from tooleval.models import MockConfig, MockResponse
from tooleval.trace import ToolCallRecord

logger = logging.getLogger(__name__)


class MockError(Exception):
    """Raised when a mocked tool call cannot be resolved or is set up to fail."""


class MockRegistry:
    """Resolves tool calls against per-tool canned responses.

    Each tool walks through its ``responses`` once, in order, then falls back
    to ``default_response`` for every later call. A tool with no mock at all
    is an error, so an unmocked case can never reach a real system.

    Safe for concurrent use; the lock is never held while a delay sleeps.
    """

    def __init__(self, configs: Iterable[MockConfig] = ()) -> None:
        self._lock = threading.Lock()
        self._mocks: Dict[str, MockConfig] = {c.tool_name: c for c in configs}
        self._call_idx: Dict[str, int] = {}
        self._calls: List[ToolCallRecord] = []

    def register(self, config: MockConfig) -> None:
        """Add or replace the mock for ``config.tool_name``."""
        with self._lock:
            self._mocks[config.tool_name] = config

    async def call(
        self,
        tool_name: str,
        parameters: Optional[Dict[str, Any]] = None,
        *,
        sink: Optional[Callable[[ToolCallRecord], None]] = None,
    ) -> ToolCallRecord:
        """Simulate a call to ``tool_name`` and return its record.

        Failures are reported in ``record.error`` rather than raised. The
        record is logged, and handed to ``sink`` if given, even when the call
        is cancelled during its delay; the cancellation is then re-raised.
        """
        params = dict(parameters or {})
        started_at = datetime.now(timezone.utc)
        start = time.perf_counter()

        with self._lock:
            response = self._next_response(tool_name)

        if isinstance(response, MockError):
            return self._record(tool_name, params, "", str(response), start, started_at, sink)

        if response.delay > 0:
            try:
                await asyncio.sleep(response.delay)
            except asyncio.CancelledError:
                self._record(tool_name, params, "", "cancelled", start, started_at, sink)
                raise

        if response.error:
            error = f"mock error for tool {tool_name!r}: {response.error}"
            return self._record(tool_name, params, "", error, start, started_at, sink)
        return self._record(tool_name, params, response.content, "", start, started_at, sink)

    async def resolve(self, tool_name: str, parameters: Optional[Dict[str, Any]] = None) -> str:
        """Simulate a call to ``tool_name`` and return its content.

        Raises:
            MockError: If the tool is unmocked, its responses are exhausted
                with no default, or the selected response carries an error.
        """
        record = await self.call(tool_name, parameters)
        if record.error:
            raise MockError(record.error)
        return record.response

    def _next_response(self, tool_name: str) -> Union[MockResponse, MockError]:
        # Caller holds the lock.
        cfg = self._mocks.get(tool_name)
        if cfg is None:
            return MockError(f"no mock configured for tool {tool_name!r}")

        idx = self._call_idx.get(tool_name, 0)
        if idx < len(cfg.responses):
            self._call_idx[tool_name] = idx + 1
            return cfg.responses[idx]
        if cfg.default_response is not None:
            return cfg.default_response
        return MockError(
            f"mock for tool {tool_name!r}: sequential responses exhausted "
            "and no default_response configured"
        )

    def _record(
        self,
        tool_name: str,
        params: Dict[str, Any],
        content: str,
        error: str,
        start: float,
        started_at: datetime,
        sink: Optional[Callable[[ToolCallRecord], None]],
    ) -> ToolCallRecord:
        record = ToolCallRecord(
            tool_name=tool_name,
            parameters=params,
            response=content,
            error=error,
            start_time=started_at,
            end_time=datetime.now(timezone.utc),
            duration=time.perf_counter() - start,
        )
        with self._lock:
            self._calls.append(record)
        if sink is not None:
            sink(record)
        if error:
            logger.debug("mock %s failed: %s", tool_name, error)
        return record

    def calls(self) -> List[ToolCallRecord]:
        """All recorded calls, in call order."""
        with self._lock:
            return list(self._calls)

    def calls_for_tool(self, name: str) -> List[ToolCallRecord]:
        with self._lock:
            return [c for c in self._calls if c.tool_name == name]
