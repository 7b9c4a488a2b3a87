"""Tests for run-to-run diffs."""

import pytest

from tooleval.diff import Category, compare
from tooleval.result import CaseSummary, RunSummary


def _make_run(run_id, *cases):
    results = []
    for case in cases:
        name, score = case[0], case[1]
        error = case[2] if len(case) > 2 else ""
        results.append(CaseSummary(case_name=name, score=score, passed=score >= 0.5, error=error))
    return RunSummary(
        run_id=run_id,
        suite_name="s",
        start_time="2026-01-01T00:00:00+00:00",
        results=results,
    )


class TestCompare:
    def test_regression(self):
        dr = compare(_make_run("a", ("c1", 0.9)), _make_run("b", ("c1", 0.4)))
        cd = dr.cases[0]
        assert cd.category is Category.REGRESSED
        assert cd.score_delta == pytest.approx(-0.5)
        assert cd.status_a == "pass" and cd.status_b == "fail"
        assert dr.summary["regressed"] == 1
        assert dr.regressions == [cd]

    def test_improvement(self):
        dr = compare(_make_run("a", ("c1", 0.2)), _make_run("b", ("c1", 0.8)))
        assert dr.cases[0].category is Category.IMPROVED
        assert dr.improvements == [dr.cases[0]]

    def test_unchanged_within_threshold(self):
        dr = compare(_make_run("a", ("c1", 0.9)), _make_run("b", ("c1", 0.5)), threshold=0.5)
        assert dr.cases[0].category is Category.UNCHANGED
        assert dr.cases[0].score_delta == pytest.approx(-0.4)
        assert dr.threshold == 0.5

    def test_zero_threshold_equal_scores(self):
        dr = compare(_make_run("a", ("c1", 0.7)), _make_run("b", ("c1", 0.7)))
        assert dr.cases[0].category is Category.UNCHANGED

    def test_new_and_removed(self):
        dr = compare(
            _make_run("a", ("kept", 1.0), ("gone", 0.6)),
            _make_run("b", ("kept", 1.0), ("fresh", 0.3)),
        )
        by_name = {c.case_name: c for c in dr.cases}
        assert by_name["fresh"].category is Category.NEW
        assert by_name["fresh"].score_b == 0.3
        assert by_name["fresh"].status_a == ""
        assert by_name["gone"].category is Category.REMOVED
        assert by_name["gone"].score_a == 0.6
        assert by_name["gone"].status_b == ""
        assert dr.summary == {"improved": 0, "regressed": 0, "unchanged": 1, "new": 1, "removed": 1}

    def test_order_b_then_removed(self):
        dr = compare(
            _make_run("a", ("x", 1.0), ("y", 1.0)),
            _make_run("b", ("z", 1.0), ("y", 1.0)),
        )
        assert [c.case_name for c in dr.cases] == ["z", "y", "x"]

    def test_error_status(self):
        dr = compare(_make_run("a", ("c1", 0.0, "provider error: boom")), _make_run("b", ("c1", 1.0)))
        assert dr.cases[0].status_a == "error"

    def test_run_ids(self):
        dr = compare(_make_run("run-a", ("c", 1.0)), _make_run("run-b", ("c", 1.0)))
        assert (dr.run_a, dr.run_b) == ("run-a", "run-b")


class TestFilter:
    def _diff(self):
        return compare(
            _make_run("a", ("up", 0.1), ("down", 0.9), ("same", 0.5)),
            _make_run("b", ("up", 0.9), ("down", 0.1), ("same", 0.5), ("new", 1.0)),
        )

    def test_filter_keeps_full_summary(self):
        dr = self._diff()
        only = dr.filter([Category.REGRESSED])
        assert [c.case_name for c in only.cases] == ["down"]
        assert only.summary == dr.summary
        assert only.summary["improved"] == 1

    def test_filter_multiple(self):
        only = self._diff().filter([Category.IMPROVED, Category.NEW])
        assert sorted(c.case_name for c in only.cases) == ["new", "up"]

    def test_empty_filter_keeps_all(self):
        dr = self._diff()
        assert len(dr.filter([]).cases) == 4
        assert len(dr.filter(None).cases) == 4

    def test_filter_does_not_mutate(self):
        dr = self._diff()
        dr.filter([Category.NEW])
        assert len(dr.cases) == 4

    def test_to_dict(self):
        d = self._diff().filter([Category.REGRESSED]).to_dict()
        assert d["cases"][0]["category"] == "regressed"
        assert d["summary"]["new"] == 1
        assert d["run_a"] == "a"
