"""Exact match judge."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from tooleval.judges import JudgeInput, JudgeResult


def normalize_whitespace(s: str) -> str:
    return " ".join(s.split())


def truncate(s: str, max_len: int = 100) -> str:
    return s if len(s) <= max_len else s[:max_len] + "..."


@dataclass
class ExactJudge:
    """Compare the output exactly with the case's expected output."""

    name: ClassVar[str] = "exact"

    normalize_whitespace: bool = False
    ignore_case: bool = False

    async def evaluate(self, judge_input: JudgeInput) -> JudgeResult:
        got = judge_input.output
        want = judge_input.expected_output

        if self.normalize_whitespace:
            got = normalize_whitespace(got)
            want = normalize_whitespace(want)
        if self.ignore_case:
            got = got.lower()
            want = want.lower()

        if got == want:
            return JudgeResult(passed=True, score=1.0, reason="output matches expected")
        return JudgeResult(
            passed=False,
            score=0.0,
            reason=f"output does not match expected: got {truncate(got)!r}, want {truncate(want)!r}",
        )
