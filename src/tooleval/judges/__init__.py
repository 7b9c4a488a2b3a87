"""Judge protocol and registry for tooleval."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from tooleval.models import EvalCase, JudgeSpec
from tooleval.trace import ToolCallRecord

# A judge returning this reason asks for a human to decide.
REVIEW_REASON = "review"


class JudgeError(Exception):
    """Raised when a judge cannot evaluate (as opposed to scoring low)."""


@dataclass
class JudgeInput:
    """Everything a judge may look at for one finished case."""
    output: str
    expected_output: str = ""
    tool_calls: List[ToolCallRecord] = field(default_factory=list)


@dataclass
class JudgeResult:
    """A judge's verdict; ``score`` is normalized to [0, 1]."""
    passed: bool
    score: float
    reason: str


class Judge(Protocol):
    """Protocol that all judges must satisfy."""

    name: str

    async def evaluate(self, judge_input: JudgeInput) -> JudgeResult: ...


@dataclass
class JudgeConfig:
    """A judge paired with its weight in the composite score."""
    judge: Judge
    weight: float = 0.0


_JUDGE_REGISTRY: Dict[str, type] = {}


def _ensure_registry() -> None:
    if _JUDGE_REGISTRY:
        return
    from tooleval.judges.contains import ContainsJudge
    from tooleval.judges.exact import ExactJudge
    from tooleval.judges.llm import LLMJudge
    from tooleval.judges.regex import RegexJudge
    from tooleval.judges.review import HumanReviewJudge
    from tooleval.judges.schema import SchemaJudge
    from tooleval.judges.tool_call import ToolCallJudge

    _JUDGE_REGISTRY.update({
        "exact": ExactJudge,
        "contains": ContainsJudge,
        "regex": RegexJudge,
        "schema": SchemaJudge,
        "toolcall": ToolCallJudge,
        "human_review": HumanReviewJudge,
        "llm": LLMJudge,
    })


def available_judges() -> List[str]:
    _ensure_registry()
    return sorted(_JUDGE_REGISTRY)


def get_judge(spec: JudgeSpec, provider: Optional[Any] = None) -> Judge:
    """Build a judge from its suite spec.

    ``spec.value`` fills the judge's primary field (pattern, schema, rubric
    and so on); ``spec.config`` supplies any other constructor options.
    """
    _ensure_registry()
    if spec.type not in _JUDGE_REGISTRY:
        raise ValueError(f"Unknown judge: {spec.type!r}. Available: {sorted(_JUDGE_REGISTRY)}")
    cls = _JUDGE_REGISTRY[spec.type]
    kwargs: Dict[str, Any] = dict(spec.config)
    value_field = getattr(cls, "value_field", None)
    if value_field and spec.value:
        kwargs[value_field] = spec.value
    if getattr(cls, "needs_provider", False):
        kwargs["provider"] = provider
    return cls(**kwargs)


def judges_for_case(case: EvalCase, provider: Optional[Any] = None) -> List[JudgeConfig]:
    """Weighted judge configs for a case.

    A ``toolcall`` judge with no explicit expectations checks the case's
    ``expected_tools`` in order.
    """
    configs = []
    for spec in case.judges:
        judge = get_judge(spec, provider)
        if spec.type == "toolcall" and not judge.expected and case.expected_tools:
            judge.expected = [{"tool_name": name} for name in case.expected_tools]
        configs.append(JudgeConfig(judge=judge, weight=spec.weight))
    return configs
