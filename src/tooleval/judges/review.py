"""Human review judge — flags a case for manual review."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from tooleval.judges import REVIEW_REASON, JudgeInput, JudgeResult


@dataclass
class HumanReviewJudge:
    """Always defer to a human; the composite status becomes ``review``."""

    name: ClassVar[str] = "human_review"

    async def evaluate(self, judge_input: JudgeInput) -> JudgeResult:
        return JudgeResult(passed=False, score=0.0, reason=REVIEW_REASON)
