"""Execution trace for a single case: messages, tool calls and token usage."""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Message:
    """A single message in the recorded conversation."""
    role: str
    content: str
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class ToolCallRecord:
    """One resolved tool invocation.

    Created by the mock registry when a call finishes (or is cancelled) and
    appended to the trace as is.
    """
    tool_name: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    response: str = ""
    error: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0


@dataclass
class TokenUsage:
    """Token consumption totals across all provider calls of a trace."""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class AgentTrace:
    """Thread-safe ledger of one case's execution.

    The executor running a case is the only writer, but reporters and judges
    may read a trace while another reference to it still exists, so every
    mutation and every copy goes through a single lock. Accessors hand out
    copies; callers can never reach the internal lists.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._messages: List[Message] = []
        self._tool_calls: List[ToolCallRecord] = []
        self._usage = TokenUsage()
        self.start_time: datetime = _now()
        self.end_time: Optional[datetime] = None
        self.duration: float = 0.0

    def add_message(self, role: str, content: str) -> None:
        with self._lock:
            self._messages.append(Message(role=role, content=content))

    def add_tool_call(self, record: ToolCallRecord) -> None:
        with self._lock:
            self._tool_calls.append(record)

    def add_usage(self, input_tokens: int, output_tokens: int) -> None:
        """Accumulate usage from a single provider call into the totals."""
        with self._lock:
            self._usage.input_tokens += input_tokens
            self._usage.output_tokens += output_tokens
            self._usage.total_tokens += input_tokens + output_tokens

    def finish(self) -> None:
        """Stamp the end time and duration. Call once per case."""
        with self._lock:
            self.end_time = _now()
            self.duration = (self.end_time - self.start_time).total_seconds()

    def messages(self) -> List[Message]:
        with self._lock:
            return [replace(m) for m in self._messages]

    def tool_calls(self) -> List[ToolCallRecord]:
        with self._lock:
            return [replace(tc, parameters=dict(tc.parameters)) for tc in self._tool_calls]

    def usage(self) -> TokenUsage:
        with self._lock:
            return replace(self._usage)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready snapshot of the trace."""
        with self._lock:
            return {
                "messages": [
                    {"role": m.role, "content": m.content, "timestamp": m.timestamp.isoformat()}
                    for m in self._messages
                ],
                "tool_calls": [_tool_call_dict(tc) for tc in self._tool_calls],
                "usage": asdict(self._usage),
                "start_time": self.start_time.isoformat(),
                "end_time": self.end_time.isoformat() if self.end_time else None,
                "duration": self.duration,
            }


def _tool_call_dict(tc: ToolCallRecord) -> Dict[str, Any]:
    return {
        "tool_name": tc.tool_name,
        "parameters": dict(tc.parameters),
        "response": tc.response,
        "error": tc.error,
        "start_time": tc.start_time.isoformat() if tc.start_time else None,
        "end_time": tc.end_time.isoformat() if tc.end_time else None,
        "duration": tc.duration,
    }
