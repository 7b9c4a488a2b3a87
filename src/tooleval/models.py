"""Core data models for tooleval."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class MockResponse:
    """A single canned tool response, optionally an error and/or a delay."""
    content: str = ""
    error: str = ""
    delay: float = 0.0


@dataclass
class MockConfig:
    """Mock behavior for a single tool."""
    tool_name: str
    responses: List[MockResponse] = field(default_factory=list)
    default_response: Optional[MockResponse] = None


@dataclass
class JudgeSpec:
    """A judge to apply to a case result, as written in a suite file."""
    type: str
    value: str = ""
    weight: float = 0.0
    comment: str = ""
    config: Dict[str, Any] = field(default_factory=dict)


@dataclass
class EvalCase:
    """A single evaluation case."""
    name: str
    input: Dict[str, Any] = field(default_factory=dict)
    id: str = ""
    context: str = ""
    timeout: Optional[float] = None
    tags: List[str] = field(default_factory=list)
    mocks: List[MockConfig] = field(default_factory=list)
    judges: List[JudgeSpec] = field(default_factory=list)
    expected_output: str = ""
    expected_tools: List[str] = field(default_factory=list)


@dataclass
class EvalSuite:
    """A collection of evaluation cases."""
    name: str
    cases: List[EvalCase]
    description: str = ""
    prompt: str = ""
    default_judges: List[JudgeSpec] = field(default_factory=list)
    default_mocks: List[MockConfig] = field(default_factory=list)

    def validate(self) -> None:
        """Raise ValueError if the suite lacks the minimum required fields."""
        if not self.name:
            raise ValueError("suite name is required")
        if not self.cases:
            raise ValueError(f"suite {self.name!r} must have at least one case")
        for i, case in enumerate(self.cases):
            if not case.name:
                raise ValueError(f"suite {self.name!r}: case {i} has no name")

    def filter_by_tag(self, tags: List[str]) -> "EvalSuite":
        """Return a suite with only the cases carrying at least one of ``tags``.

        An empty tag list returns the suite unchanged.
        """
        if not tags:
            return self
        tag_set = set(tags)
        return EvalSuite(
            name=self.name,
            cases=[c for c in self.cases if tag_set & set(c.tags)],
            description=self.description,
            prompt=self.prompt,
            default_judges=self.default_judges,
            default_mocks=self.default_mocks,
        )

    def apply_defaults(self) -> None:
        """Give cases without their own judges or mocks the suite defaults."""
        for case in self.cases:
            if not case.judges and self.default_judges:
                case.judges = list(self.default_judges)
            if not case.mocks and self.default_mocks:
                case.mocks = list(self.default_mocks)
