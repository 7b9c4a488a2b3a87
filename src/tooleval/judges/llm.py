"""LLM judge — uses a model to grade agent output against a rubric."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional

from tooleval.judges import JudgeError, JudgeInput, JudgeResult
from tooleval.providers import Message, Request, Usage

_SYSTEM_PROMPT = """You are an expert evaluator grading an AI agent's output. You will be given:
1. The agent's output
2. Optionally, the expected output and the tool calls the agent made
3. A rubric describing how to evaluate

Grade the output on a scale of 1-5:
  1 = Completely wrong or irrelevant
  2 = Mostly wrong with minor correct elements
  3 = Partially correct but significant issues
  4 = Mostly correct with minor issues
  5 = Fully correct and complete

Respond ONLY with JSON: {"score": <1-5>, "pass": <true/false>, "reasoning": "..."}

Set "pass" to true if score >= 4, false otherwise."""

_SCORE_RE = re.compile(r"\b([1-5])\b")
_PASS_SCORE = 4


@dataclass
class LLMJudge:
    """Send the output to a model for a 1-5 rating, normalized to 0-1.

    Uses ``provider`` when given, else an OpenAI provider keyed from
    ``OPENAI_API_KEY``.
    """

    name: ClassVar[str] = "llm"
    value_field: ClassVar[str] = "rubric"
    needs_provider: ClassVar[bool] = True

    rubric: str = "Is the output correct and complete?"
    model: str = "gpt-4o-mini"
    provider: Optional[Any] = None
    usage: Usage = field(default_factory=Usage)

    def _provider(self) -> Any:
        if self.provider is not None:
            return self.provider
        api_key = os.environ.get("OPENAI_API_KEY", "")
        if not api_key:
            raise JudgeError("llm judge has no provider and OPENAI_API_KEY is not set")
        from tooleval.providers.openai import OpenAIProvider

        self.provider = OpenAIProvider(api_key)
        return self.provider

    async def evaluate(self, judge_input: JudgeInput) -> JudgeResult:
        provider = self._provider()
        request = Request(
            model=self.model,
            system=_SYSTEM_PROMPT,
            messages=[Message(role="user", content=build_judge_prompt(self.rubric, judge_input))],
            max_tokens=1024,
        )
        try:
            resp = await provider.complete(request)
        except Exception as exc:
            raise JudgeError(f"llm judge call failed: {exc}") from exc

        self.usage.input_tokens += resp.usage.input_tokens
        self.usage.output_tokens += resp.usage.output_tokens
        return parse_judge_response(resp.content)


def build_judge_prompt(rubric: str, judge_input: JudgeInput) -> str:
    parts = []
    if judge_input.expected_output:
        parts.append(f"## Expected Output\n{judge_input.expected_output}\n")
    parts.append(f"## Agent Output\n{judge_input.output}\n")
    if judge_input.tool_calls:
        lines = [
            f"{i}. {tc.tool_name}({json.dumps(tc.parameters, sort_keys=True)})"
            for i, tc in enumerate(judge_input.tool_calls, 1)
        ]
        parts.append("## Tool Calls Made\n" + "\n".join(lines) + "\n")
    parts.append(f"## Rubric\n{rubric}")
    return "\n".join(parts)


def _from_parsed(parsed: Dict[str, Any]) -> Optional[JudgeResult]:
    try:
        score = int(parsed["score"])
    except (KeyError, TypeError, ValueError):
        return None
    if not 1 <= score <= 5:
        return None
    return JudgeResult(
        passed=bool(parsed.get("pass", score >= _PASS_SCORE)),
        score=score / 5.0,
        reason=str(parsed.get("reasoning", "")),
    )


def parse_judge_response(content: str) -> JudgeResult:
    """Parse the model's verdict.

    Tries strict JSON, then the outermost ``{...}`` span, then a bare 1-5
    digit anywhere in the text.

    Raises:
        JudgeError: If no score can be recovered.
    """
    content = content.strip()
    candidates = [content]
    start, end = content.find("{"), content.rfind("}")
    if 0 <= start < end:
        candidates.append(content[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            result = _from_parsed(parsed)
            if result is not None:
                return result

    match = _SCORE_RE.search(content)
    if match:
        score = int(match.group(1))
        return JudgeResult(
            passed=score >= _PASS_SCORE,
            score=score / 5.0,
            reason=f"extracted score from unstructured response: {content[:200]}",
        )
    raise JudgeError(f"could not parse judge response: {content[:200]}")
