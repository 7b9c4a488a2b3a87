"""Composite scoring — merges several judge verdicts into one outcome."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from tooleval.judges import REVIEW_REASON, JudgeConfig, JudgeInput

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.5


class Status(enum.Enum):
    PASS = "pass"
    FAIL = "fail"
    REVIEW = "review"
    ERROR = "error"


@dataclass
class JudgeScore:
    """One judge's contribution to the composite."""
    judge_name: str
    weight: float
    status: Status
    passed: bool = False
    score: float = 0.0
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "judge_name": self.judge_name,
            "weight": self.weight,
            "status": self.status.value,
            "passed": self.passed,
            "score": self.score,
            "reason": self.reason,
        }


@dataclass
class CompositeResult:
    status: Status
    composite_score: float
    passed: bool
    scores: List[JudgeScore] = field(default_factory=list)
    reason: str = ""


class CompositeScorer:
    """Weighted average of judge scores with a pass threshold.

    Judges that error or ask for human review do not contribute to the
    average, and either condition forces the case to not pass:
    ``error`` beats ``review`` beats the threshold verdict.
    """

    def __init__(self, threshold: float = DEFAULT_THRESHOLD) -> None:
        self.threshold = threshold if threshold else DEFAULT_THRESHOLD

    async def score(self, judge_input: JudgeInput, configs: Sequence[JudgeConfig]) -> CompositeResult:
        scores: List[JudgeScore] = []
        reasons: List[str] = []
        weighted_sum = 0.0
        total_weight = 0.0
        has_error = has_review = False

        for cfg in configs:
            weight = cfg.weight or 1.0
            name = cfg.judge.name
            try:
                result = await cfg.judge.evaluate(judge_input)
            except Exception as exc:
                logger.warning("judge %s failed: %s", name, exc)
                has_error = True
                scores.append(JudgeScore(judge_name=name, weight=weight, status=Status.ERROR, reason=str(exc)))
                reasons.append(f"{name}: error: {exc}")
                continue

            js = JudgeScore(
                judge_name=name,
                weight=weight,
                status=Status.PASS if result.passed else Status.FAIL,
                passed=result.passed,
                score=result.score,
                reason=result.reason,
            )
            if result.reason == REVIEW_REASON:
                js.status = Status.REVIEW
                has_review = True
                reasons.append(f"{name}: needs human review")
            else:
                weighted_sum += result.score * weight
                total_weight += weight
                reasons.append(f"{name}: {result.reason} (score={result.score:.2f})")
            scores.append(js)

        composite = weighted_sum / total_weight if total_weight > 0 else 0.0

        if has_error:
            status, passed = Status.ERROR, False
        elif has_review:
            status, passed = Status.REVIEW, False
        elif configs and composite >= self.threshold:
            status, passed = Status.PASS, True
        else:
            status, passed = Status.FAIL, False

        return CompositeResult(
            status=status,
            composite_score=composite,
            passed=passed,
            scores=scores,
            reason="; ".join(reasons) if reasons else "no judges configured",
        )
