"""Tool call judge."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List

from tooleval.judges import JudgeInput, JudgeResult


def _params_match(expected: Dict[str, Any], actual: Dict[str, Any], mode: str) -> bool:
    if not expected:
        return True
    if mode == "exact" and len(expected) != len(actual):
        return False
    return all(k in actual and str(actual[k]) == str(v) for k, v in expected.items())


@dataclass
class ToolCallJudge:
    """Check the trace's tool calls against ``expected``.

    Each expectation is a mapping with ``tool_name`` and optionally
    ``parameters``, ``match_mode`` (``"subset"``, the default, or
    ``"exact"``) and ``negate``. Positive expectations must appear in order
    (as a subsequence of the calls made); negated ones must not appear at
    all. ``value`` is a comma-separated shorthand for tool names.
    """

    name: ClassVar[str] = "toolcall"
    value_field: ClassVar[str] = "value"

    expected: List[Dict[str, Any]] = field(default_factory=list)
    value: str = ""

    def __post_init__(self) -> None:
        if self.value and not self.expected:
            self.expected = [
                {"tool_name": n.strip()} for n in self.value.split(",") if n.strip()
            ]

    async def evaluate(self, judge_input: JudgeInput) -> JudgeResult:
        calls = judge_input.tool_calls
        failures = []

        positives = [e for e in self.expected if not e.get("negate")]
        negatives = [e for e in self.expected if e.get("negate")]

        called = {c.tool_name for c in calls}
        for neg in negatives:
            if neg["tool_name"] in called:
                failures.append(f"tool {neg['tool_name']!r} was called but should not have been")

        call_idx = 0
        for exp in positives:
            found = False
            while call_idx < len(calls):
                call = calls[call_idx]
                call_idx += 1
                if call.tool_name == exp["tool_name"] and _params_match(
                    exp.get("parameters") or {}, call.parameters, exp.get("match_mode", "subset"),
                ):
                    found = True
                    break
            if not found:
                failures.append(f"expected tool call {exp['tool_name']!r} not found in sequence")

        if not failures:
            return JudgeResult(passed=True, score=1.0, reason="all tool call assertions passed")
        return JudgeResult(passed=False, score=0.0, reason="; ".join(failures))
