"""Contains judge — checks substrings present in output."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, List

from tooleval.judges import JudgeInput, JudgeResult


@dataclass
class ContainsJudge:
    """Check that ``value`` (and any ``substrings``) appear in the output.

    The score is the fraction of substrings found.
    """

    name: ClassVar[str] = "contains"
    value_field: ClassVar[str] = "value"

    value: str = ""
    substrings: List[str] = field(default_factory=list)
    ignore_case: bool = False

    async def evaluate(self, judge_input: JudgeInput) -> JudgeResult:
        wanted = ([self.value] if self.value else []) + list(self.substrings)
        if not wanted:
            return JudgeResult(passed=True, score=1.0, reason="No substrings to check")

        output = judge_input.output
        if self.ignore_case:
            output = output.lower()
        missing = [s for s in wanted if (s.lower() if self.ignore_case else s) not in output]
        score = (len(wanted) - len(missing)) / len(wanted)
        passed = not missing

        return JudgeResult(
            passed=passed,
            score=score,
            reason="All substrings found" if passed else f"Missing: {missing!r}",
        )
