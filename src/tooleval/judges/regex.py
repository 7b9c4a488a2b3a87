"""Regex judge."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import ClassVar, List

from tooleval.judges import JudgeError, JudgeInput, JudgeResult

_FLAG_MAP = {
    "IGNORECASE": re.IGNORECASE,
    "DOTALL": re.DOTALL,
    "MULTILINE": re.MULTILINE,
    "VERBOSE": re.VERBOSE,
}


@dataclass
class RegexJudge:
    """Search the output for ``pattern``."""

    name: ClassVar[str] = "regex"
    value_field: ClassVar[str] = "pattern"

    pattern: str = ""
    flags: List[str] = field(default_factory=list)

    async def evaluate(self, judge_input: JudgeInput) -> JudgeResult:
        combined_flags = 0
        for f in self.flags:
            flag = _FLAG_MAP.get(f.upper())
            if flag is None:
                raise JudgeError(f"Unknown regex flag: {f!r}")
            combined_flags |= flag

        try:
            matched = bool(re.search(self.pattern, judge_input.output, combined_flags))
        except re.error as exc:
            raise JudgeError(f"invalid regex pattern {self.pattern!r}: {exc}") from exc
        return JudgeResult(
            passed=matched,
            score=1.0 if matched else 0.0,
            reason=(
                f"output matches pattern {self.pattern!r}" if matched
                else f"output does not match pattern {self.pattern!r}"
            ),
        )
