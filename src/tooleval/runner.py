"""Runner — drives eval cases through the provider/tool-mock loop."""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from tooleval.mock import MockRegistry
from tooleval.models import EvalCase, EvalSuite
from tooleval.prompt import PromptError, PromptVariant
from tooleval.providers import Message, Provider, Request
from tooleval.trace import AgentTrace

logger = logging.getLogger(__name__)

# Upper bound on provider round-trips per case, so a model that keeps
# requesting tools cannot loop forever.
MAX_TOOL_LOOP_ITERATIONS = 20

DEFAULT_TIMEOUT = 60.0

ProgressCallback = Callable[[int, int, str, float, Optional[str]], None]


class CaseState(enum.Enum):
    RUNNING = "running"
    DONE = "done"
    ERRORED = "errored"


@dataclass
class CaseResult:
    """Output of running a single eval case."""
    case_name: str
    case_id: str = ""
    prompt: str = ""
    model: str = ""
    final_response: str = ""
    trace: Optional[AgentTrace] = None
    error: str = ""
    duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "case_name": self.case_name,
            "case_id": self.case_id,
            "prompt": self.prompt,
            "model": self.model,
            "final_response": self.final_response,
            "trace": self.trace.to_dict() if self.trace else None,
            "error": self.error,
            "duration": self.duration,
        }


@dataclass
class RunResult:
    """Output of running an entire suite."""
    suite_name: str
    start_time: datetime
    cases: List[CaseResult] = field(default_factory=list)
    end_time: Optional[datetime] = None
    duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suite_name": self.suite_name,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration,
            "cases": [c.to_dict() for c in self.cases],
        }


@dataclass
class RunnerConfig:
    concurrency: int = 1
    timeout: float = DEFAULT_TIMEOUT
    model: str = ""
    temperature: float = 0.0
    max_tokens: int = 0


class Runner:
    """Runs suite cases against a provider with bounded concurrency."""

    def __init__(self, config: Optional[RunnerConfig] = None) -> None:
        cfg = config or RunnerConfig()
        if cfg.concurrency < 1:
            cfg.concurrency = 1
        if cfg.timeout <= 0:
            cfg.timeout = DEFAULT_TIMEOUT
        self.config = cfg

    async def run(
        self,
        suite: EvalSuite,
        prompt: PromptVariant,
        provider: Provider,
        progress: Optional[ProgressCallback] = None,
    ) -> RunResult:
        """Run every case of ``suite`` and return results in input order.

        At most ``config.concurrency`` cases are in flight at once. A failing
        case is recorded on its own result and never cancels its siblings.
        ``progress`` is called after each case with
        ``(completed, total, case_name, elapsed_seconds, error_or_None)``.
        """
        start_time = datetime.now(timezone.utc)
        start = time.perf_counter()
        total = len(suite.cases)
        slots: List[Optional[CaseResult]] = [None] * total
        sem = asyncio.Semaphore(self.config.concurrency)
        lock = asyncio.Lock()
        completed = 0

        async def _guarded(idx: int, case: EvalCase) -> None:
            nonlocal completed
            async with sem:
                try:
                    cr = await self.run_case(case, prompt, provider)
                except Exception as exc:
                    logger.exception("case %s: unexpected failure", case.name)
                    cr = CaseResult(
                        case_name=case.name,
                        case_id=case.id,
                        prompt=prompt.name,
                        model=self.config.model,
                        error=f"internal error: {exc}",
                    )
            async with lock:
                slots[idx] = cr
                completed += 1
                current = completed
            if progress is not None:
                progress(current, total, case.name, time.perf_counter() - start, cr.error or None)

        await asyncio.gather(*(_guarded(i, c) for i, c in enumerate(suite.cases)))

        result = RunResult(
            suite_name=suite.name,
            start_time=start_time,
            cases=[cr for cr in slots if cr is not None],
        )
        result.end_time = datetime.now(timezone.utc)
        result.duration = time.perf_counter() - start
        return result

    async def run_case(self, case: EvalCase, prompt: PromptVariant, provider: Provider) -> CaseResult:
        """Run a single case through the full agent loop."""
        start = time.perf_counter()
        cr = CaseResult(
            case_name=case.name,
            case_id=case.id,
            prompt=prompt.name,
            model=self.config.model,
        )
        timeout = case.timeout if case.timeout and case.timeout > 0 else self.config.timeout

        try:
            rendered = prompt.interpolate(case.input)
        except PromptError as exc:
            cr.error = f"interpolating prompt: {exc}"
            cr.duration = time.perf_counter() - start
            logger.warning("case %s: %s", case.name, cr.error)
            return cr

        trace = AgentTrace()
        cr.trace = trace
        registry = MockRegistry(case.mocks)
        logger.debug("case %s: starting (timeout=%.1fs)", case.name, timeout)

        try:
            await asyncio.wait_for(
                self._tool_loop(cr, rendered, provider, registry, trace),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            cr.error = f"provider error: timed out after {timeout:g}s"

        trace.finish()
        cr.duration = time.perf_counter() - start
        if cr.error:
            logger.warning("case %s: %s", case.name, cr.error)
        else:
            logger.debug("case %s: done in %.2fs", case.name, cr.duration)
        return cr

    async def _tool_loop(
        self,
        cr: CaseResult,
        rendered: PromptVariant,
        provider: Provider,
        registry: MockRegistry,
        trace: AgentTrace,
    ) -> CaseState:
        tools = rendered.tool_schemas()
        messages = [Message(role="user", content=rendered.user)]
        trace.add_message("user", rendered.user)

        state = CaseState.RUNNING
        iteration = 0
        while state is CaseState.RUNNING:
            if iteration >= MAX_TOOL_LOOP_ITERATIONS:
                cr.error = f"max iterations exceeded ({MAX_TOOL_LOOP_ITERATIONS})"
                state = CaseState.ERRORED
                break
            iteration += 1

            request = Request(
                model=self.config.model,
                system=rendered.system,
                messages=list(messages),
                tools=tools,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
            try:
                resp = await provider.complete(request)
            except Exception as exc:
                cr.error = f"provider error: {exc}"
                state = CaseState.ERRORED
                break

            trace.add_usage(resp.usage.input_tokens, resp.usage.output_tokens)

            if not resp.tool_calls:
                trace.add_message("assistant", resp.content)
                cr.final_response = resp.content
                state = CaseState.DONE
                break

            trace.add_message("assistant", resp.content)
            messages.append(Message(
                role="assistant",
                content=resp.content,
                tool_calls=list(resp.tool_calls),
            ))

            # Sequential, in emitted order: the trace must be reproducible.
            for tc in resp.tool_calls:
                content = await self._resolve_tool_call(registry, trace, tc.name, tc.parameters)
                messages.append(Message(role="tool", content=content, tool_call_id=tc.id))
                trace.add_message("tool", content)

        return state

    @staticmethod
    async def _resolve_tool_call(
        registry: MockRegistry,
        trace: AgentTrace,
        name: str,
        parameters: Dict[str, Any],
    ) -> str:
        """Resolve one tool call and return the tool-result text.

        The registry hands its record straight to the trace, so a call cut
        short by the case deadline still shows up there.
        """
        record = await registry.call(name, parameters, sink=trace.add_tool_call)
        if record.error:
            return f"Error: {record.error}"
        return record.response
