"""Run-to-run diff: classifies per-case score movement between two runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from tooleval.result import CaseSummary, RunSummary


class Category(Enum):
    """How a case moved between run A and run B."""
    IMPROVED = "improved"
    REGRESSED = "regressed"
    UNCHANGED = "unchanged"
    NEW = "new"
    REMOVED = "removed"


@dataclass
class CaseDiff:
    case_name: str
    category: Category
    score_a: float = 0.0
    score_b: float = 0.0
    score_delta: float = 0.0
    status_a: str = ""
    status_b: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "case_name": self.case_name,
            "category": self.category.value,
            "score_a": self.score_a,
            "score_b": self.score_b,
            "score_delta": self.score_delta,
            "status_a": self.status_a,
            "status_b": self.status_b,
        }


def _empty_summary() -> Dict[str, int]:
    return {c.value: 0 for c in Category}


@dataclass
class DiffResult:
    """Full comparison between two runs.

    ``summary`` holds per-category counts over every case; it is kept as is
    by :meth:`filter`.
    """
    run_a: str
    run_b: str
    cases: List[CaseDiff] = field(default_factory=list)
    summary: Dict[str, int] = field(default_factory=_empty_summary)
    threshold: float = 0.0

    @property
    def regressions(self) -> List[CaseDiff]:
        return [c for c in self.cases if c.category == Category.REGRESSED]

    @property
    def improvements(self) -> List[CaseDiff]:
        return [c for c in self.cases if c.category == Category.IMPROVED]

    def filter(self, categories: Optional[Iterable[Category]]) -> "DiffResult":
        """Return a copy with only the given categories; empty/None keeps all."""
        wanted = set(categories or ())
        if not wanted:
            return self
        return DiffResult(
            run_a=self.run_a,
            run_b=self.run_b,
            cases=[c for c in self.cases if c.category in wanted],
            summary=dict(self.summary),
            threshold=self.threshold,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_a": self.run_a,
            "run_b": self.run_b,
            "threshold": self.threshold,
            "cases": [c.to_dict() for c in self.cases],
            "summary": dict(self.summary),
        }


def _status(cr: CaseSummary) -> str:
    if cr.error:
        return "error"
    return "pass" if cr.passed else "fail"


def compare(run_a: RunSummary, run_b: RunSummary, threshold: float = 0.0) -> DiffResult:
    """Compare two scored runs, matching cases by name.

    Cases of run B come first, in B's order, followed by the cases only run
    A has. A case is unchanged while ``|delta| <= threshold``.
    """
    dr = DiffResult(run_a=run_a.run_id, run_b=run_b.run_id, threshold=threshold)
    a_by_name = {cr.case_name: cr for cr in run_a.results}
    b_names = {cr.case_name for cr in run_b.results}

    for cr_b in run_b.results:
        cd = CaseDiff(
            case_name=cr_b.case_name,
            category=Category.NEW,
            score_b=cr_b.score,
            status_b=_status(cr_b),
        )
        cr_a = a_by_name.get(cr_b.case_name)
        if cr_a is not None:
            cd.score_a = cr_a.score
            cd.status_a = _status(cr_a)
            cd.score_delta = cr_b.score - cr_a.score
            if abs(cd.score_delta) <= threshold:
                cd.category = Category.UNCHANGED
            elif cd.score_delta > 0:
                cd.category = Category.IMPROVED
            else:
                cd.category = Category.REGRESSED
        dr.summary[cd.category.value] += 1
        dr.cases.append(cd)

    for cr_a in run_a.results:
        if cr_a.case_name not in b_names:
            dr.cases.append(CaseDiff(
                case_name=cr_a.case_name,
                category=Category.REMOVED,
                score_a=cr_a.score,
                status_a=_status(cr_a),
            ))
            dr.summary[Category.REMOVED.value] += 1

    return dr
