"""Run summaries: judging a finished run, aggregate stats and JSON files."""

from __future__ import annotations

import json
import math
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from tooleval.judges import JudgeInput, judges_for_case
from tooleval.judges.composite import CompositeScorer, Status
from tooleval.models import EvalSuite
from tooleval.runner import CaseResult, RunResult

_TIME_FORMAT = "%Y%m%d-%H%M%S"


@dataclass
class CaseSummary:
    """Per-case entry of a persisted run."""
    case_name: str
    case_id: str = ""
    prompt: str = ""
    model: str = ""
    final_response: str = ""
    score: float = 0.0
    passed: bool = False
    status: str = ""
    reason: str = ""
    error: str = ""
    duration: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    judge_scores: List[Dict[str, Any]] = field(default_factory=list)
    trace: Optional[Dict[str, Any]] = None


@dataclass
class Stats:
    total_cases: int = 0
    passed_cases: int = 0
    failed_cases: int = 0
    errored_cases: int = 0
    pass_rate: float = 0.0
    avg_score: float = 0.0
    latency_p50: float = 0.0
    latency_p95: float = 0.0
    total_input_tokens: int = 0
    total_output_tokens: int = 0


@dataclass
class RunSummary:
    """Top-level structure persisted to JSON for each run."""
    run_id: str
    suite_name: str
    start_time: str
    end_time: str = ""
    duration: float = 0.0
    stats: Stats = field(default_factory=Stats)
    results: List[CaseSummary] = field(default_factory=list)

    @classmethod
    def from_run_result(cls, run: RunResult) -> "RunSummary":
        """Convert a RunResult; scores stay zero until the run is judged."""
        summary = cls(
            run_id=f"{run.start_time.strftime(_TIME_FORMAT)}-{run.suite_name}",
            suite_name=run.suite_name,
            start_time=run.start_time.isoformat(),
            end_time=run.end_time.isoformat() if run.end_time else "",
            duration=run.duration,
            results=[_case_summary(cr) for cr in run.cases],
        )
        summary.stats = compute_stats(summary.results)
        return summary

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def save(self, path: str) -> None:
        """Write as pretty-printed JSON, creating parent directories."""
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)


def _case_summary(cr: CaseResult) -> CaseSummary:
    cs = CaseSummary(
        case_name=cr.case_name,
        case_id=cr.case_id,
        prompt=cr.prompt,
        model=cr.model,
        final_response=cr.final_response,
        error=cr.error,
        duration=cr.duration,
        status=Status.ERROR.value if cr.error else "",
    )
    if cr.trace is not None:
        usage = cr.trace.usage()
        cs.input_tokens = usage.input_tokens
        cs.output_tokens = usage.output_tokens
        cs.trace = cr.trace.to_dict()
    return cs


async def score_run(
    run: RunResult,
    suite: EvalSuite,
    scorer: CompositeScorer,
    judge_provider: Optional[Any] = None,
) -> RunSummary:
    """Judge every case of a finished run and return its summary.

    Cases that errored during execution are not judged; they keep
    status ``error`` and score 0.
    """
    summary = RunSummary.from_run_result(run)
    cases = {c.name: c for c in suite.cases}

    for cr, cs in zip(run.cases, summary.results):
        if cr.error:
            cs.reason = cr.error
            continue
        case = cases.get(cr.case_name)
        if case is None:
            continue
        judge_input = JudgeInput(
            output=cr.final_response,
            expected_output=case.expected_output,
            tool_calls=cr.trace.tool_calls() if cr.trace else [],
        )
        composite = await scorer.score(judge_input, judges_for_case(case, judge_provider))
        cs.score = composite.composite_score
        cs.passed = composite.passed
        cs.status = composite.status.value
        cs.reason = composite.reason
        cs.judge_scores = [js.to_dict() for js in composite.scores]

    summary.stats = compute_stats(summary.results)
    return summary


def compute_stats(results: Sequence[CaseSummary]) -> Stats:
    """Aggregate statistics; pass rate excludes errored cases."""
    s = Stats(total_cases=len(results))
    if not results:
        return s

    for r in results:
        if r.error:
            s.errored_cases += 1
        elif r.passed:
            s.passed_cases += 1
        else:
            s.failed_cases += 1
        s.total_input_tokens += r.input_tokens
        s.total_output_tokens += r.output_tokens

    non_errored = s.total_cases - s.errored_cases
    if non_errored:
        s.pass_rate = s.passed_cases / non_errored
    s.avg_score = sum(r.score for r in results) / s.total_cases

    durations = sorted(r.duration for r in results)
    s.latency_p50 = percentile(durations, 0.5)
    s.latency_p95 = percentile(durations, 0.95)
    return s


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Linearly interpolated percentile (``p`` in 0..1) of sorted values."""
    if not sorted_values:
        return 0.0
    idx = p * (len(sorted_values) - 1)
    lower, upper = math.floor(idx), math.ceil(idx)
    if lower == upper:
        return sorted_values[lower]
    frac = idx - lower
    return sorted_values[lower] * (1 - frac) + sorted_values[upper] * frac


def default_path(output_dir: str, suite_name: str, start_time: datetime) -> str:
    return os.path.join(output_dir, f"{start_time.strftime(_TIME_FORMAT)}-{suite_name}.json")


class ResultError(Exception):
    """Raised when a result file cannot be read."""


def load_summary(path: str) -> RunSummary:
    """Read a RunSummary written by :meth:`RunSummary.save`."""
    try:
        with open(path) as f:
            data = json.load(f)
    except OSError as e:
        raise ResultError(f"reading result file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ResultError(f"parsing result file {path}: {e}") from e

    try:
        return RunSummary(
            run_id=data["run_id"],
            suite_name=data["suite_name"],
            start_time=data.get("start_time", ""),
            end_time=data.get("end_time", ""),
            duration=data.get("duration", 0.0),
            stats=Stats(**data.get("stats", {})),
            results=[CaseSummary(**r) for r in data.get("results", [])],
        )
    except (KeyError, TypeError) as e:
        raise ResultError(f"invalid result file {path}: {e}") from e
