"""Tests for the runner module: the per-case agent/tool loop."""

import pytest

from tests.helpers.scripted_provider import (
    CalculatorProvider,
    FailingProvider,
    LoopingProvider,
    ScriptedProvider,
)
from tooleval.models import EvalCase, MockConfig, MockResponse
from tooleval.prompt import PromptVariant, ToolDefinition
from tooleval.providers import Response, ToolCall, Usage
from tooleval.runner import MAX_TOOL_LOOP_ITERATIONS, Runner, RunnerConfig


def _make_prompt(**kw):
    defaults = dict(
        name="calc-v1",
        system="You are a calculator assistant.",
        user="What is $question?",
        tools=[ToolDefinition(name="calculator", description="Evaluates arithmetic")],
    )
    defaults.update(kw)
    return PromptVariant(**defaults)


def _make_case(mocks=None, **kw):
    defaults = dict(
        name="add",
        id="c-1",
        input={"question": "2+2"},
        mocks=mocks if mocks is not None else [
            MockConfig(tool_name="calculator", responses=[MockResponse(content="4")]),
        ],
    )
    defaults.update(kw)
    return EvalCase(**defaults)


def _runner(**kw):
    return Runner(RunnerConfig(model="test-model", **kw))


class TestRunCase:
    @pytest.mark.asyncio
    async def test_calculator_end_to_end(self):
        provider = ScriptedProvider(
            Response(
                tool_calls=[ToolCall(id="t1", name="calculator", parameters={"expression": "2+2"})],
                usage=Usage(20, 10),
            ),
            Response(content="The answer is 4.", usage=Usage(30, 8)),
        )
        cr = await _runner().run_case(_make_case(), _make_prompt(), provider)

        assert cr.error == ""
        assert cr.final_response == "The answer is 4."
        assert cr.case_name == "add"
        assert cr.case_id == "c-1"
        assert cr.prompt == "calc-v1"
        assert cr.model == "test-model"

        calls = cr.trace.tool_calls()
        assert len(calls) == 1
        assert calls[0].tool_name == "calculator"
        assert calls[0].parameters == {"expression": "2+2"}
        assert calls[0].response == "4"
        assert calls[0].error == ""

        usage = cr.trace.usage()
        assert (usage.input_tokens, usage.output_tokens, usage.total_tokens) == (50, 18, 68)
        assert cr.trace.end_time is not None
        assert cr.duration > 0

    @pytest.mark.asyncio
    async def test_request_contents(self):
        provider = ScriptedProvider(
            Response(tool_calls=[ToolCall(id="t1", name="calculator")]),
            Response(content="done"),
        )
        await _runner(temperature=0.2, max_tokens=99).run_case(_make_case(), _make_prompt(), provider)

        first, second = provider.requests
        assert first.model == "test-model"
        assert first.system == "You are a calculator assistant."
        assert first.temperature == 0.2
        assert first.max_tokens == 99
        assert [t.name for t in first.tools] == ["calculator"]
        assert [(m.role, m.content) for m in first.messages] == [("user", "What is 2+2?")]

        roles = [m.role for m in second.messages]
        assert roles == ["user", "assistant", "tool"]
        assert second.messages[1].tool_calls[0].id == "t1"
        assert second.messages[2].tool_call_id == "t1"
        assert second.messages[2].content == "4"

    @pytest.mark.asyncio
    async def test_trace_messages(self):
        cr = await _runner().run_case(_make_case(), _make_prompt(), CalculatorProvider())
        assert [(m.role, m.content) for m in cr.trace.messages()] == [
            ("user", "What is 2+2?"),
            ("assistant", ""),
            ("tool", "4"),
            ("assistant", "The answer is 4."),
        ]

    @pytest.mark.asyncio
    async def test_no_tool_calls_finishes_immediately(self):
        provider = ScriptedProvider(Response(content="hi", usage=Usage(3, 2)))
        cr = await _runner().run_case(_make_case(mocks=[]), _make_prompt(), provider)
        assert cr.final_response == "hi"
        assert cr.trace.tool_calls() == []
        assert len(provider.requests) == 1

    @pytest.mark.asyncio
    async def test_provider_error_keeps_partial_trace(self):
        provider = ScriptedProvider(
            Response(tool_calls=[ToolCall(id="t1", name="calculator")], usage=Usage(5, 5)),
        )
        cr = await _runner().run_case(_make_case(), _make_prompt(), provider)

        assert cr.error.startswith("provider error:")
        assert cr.final_response == ""
        assert len(cr.trace.tool_calls()) == 1
        assert cr.trace.usage().total_tokens == 10
        assert cr.trace.end_time is not None

    @pytest.mark.asyncio
    async def test_provider_error_message(self):
        cr = await _runner().run_case(_make_case(), _make_prompt(), FailingProvider("rate limited"))
        assert cr.error == "provider error: rate limited"

    @pytest.mark.asyncio
    async def test_interpolation_error(self):
        provider = ScriptedProvider(Response(content="unused"))
        case = _make_case(input={"other": "x"})
        cr = await _runner().run_case(case, _make_prompt(), provider)

        assert cr.error.startswith("interpolating prompt:")
        assert "question" in cr.error
        assert cr.trace is None
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_max_iterations(self):
        provider = LoopingProvider("again")
        case = _make_case(mocks=[
            MockConfig(tool_name="again", default_response=MockResponse(content="go on")),
        ])
        cr = await _runner().run_case(case, _make_prompt(), provider)

        assert cr.error == f"max iterations exceeded ({MAX_TOOL_LOOP_ITERATIONS})"
        assert provider.calls == MAX_TOOL_LOOP_ITERATIONS
        assert len(cr.trace.tool_calls()) == MAX_TOOL_LOOP_ITERATIONS
        assert cr.final_response == ""

    @pytest.mark.asyncio
    async def test_timeout_from_mock_delay(self):
        provider = ScriptedProvider(
            Response(tool_calls=[ToolCall(id="t1", name="calculator")]),
            Response(content="late"),
        )
        case = _make_case(
            timeout=0.1,
            mocks=[MockConfig(tool_name="calculator", responses=[MockResponse(content="4", delay=5)])],
        )
        cr = await _runner().run_case(case, _make_prompt(), provider)

        assert "timed out" in cr.error
        assert cr.error.startswith("provider error:")
        assert cr.final_response == ""
        assert cr.duration < 2
        assert cr.trace.end_time is not None

        calls = cr.trace.tool_calls()
        assert len(calls) == 1
        assert calls[0].tool_name == "calculator"
        assert calls[0].error == "cancelled"
        assert calls[0].end_time is not None

    @pytest.mark.asyncio
    async def test_runner_timeout_applies_without_case_timeout(self):
        provider = ScriptedProvider(Response(content="slow"), delay=5)
        cr = await _runner(timeout=0.05).run_case(_make_case(), _make_prompt(), provider)
        assert "timed out after 0.05s" in cr.error

    @pytest.mark.asyncio
    async def test_mock_error_is_fed_back_to_model(self):
        provider = ScriptedProvider(
            Response(tool_calls=[ToolCall(id="t1", name="calculator")]),
            Response(content="The tool failed."),
        )
        case = _make_case(mocks=[
            MockConfig(tool_name="calculator", responses=[MockResponse(error="division by zero")]),
        ])
        cr = await _runner().run_case(case, _make_prompt(), provider)

        assert cr.error == ""
        assert cr.final_response == "The tool failed."
        tool_msg = provider.requests[1].messages[-1]
        assert tool_msg.role == "tool"
        assert tool_msg.content.startswith("Error:")
        assert "division by zero" in tool_msg.content
        record = cr.trace.tool_calls()[0]
        assert "division by zero" in record.error
        assert record.response == ""

    @pytest.mark.asyncio
    async def test_unmocked_tool_is_fed_back_as_error(self):
        provider = ScriptedProvider(
            Response(tool_calls=[ToolCall(id="t1", name="rm_rf")]),
            Response(content="ok"),
        )
        cr = await _runner().run_case(_make_case(), _make_prompt(), provider)
        assert cr.error == ""
        assert "no mock configured" in provider.requests[1].messages[-1].content
        assert cr.trace.tool_calls()[0].tool_name == "rm_rf"

    @pytest.mark.asyncio
    async def test_multiple_tool_calls_resolved_in_order(self):
        provider = ScriptedProvider(
            Response(tool_calls=[
                ToolCall(id="a", name="search", parameters={"q": "one"}),
                ToolCall(id="b", name="fetch", parameters={"url": "x"}),
                ToolCall(id="c", name="search", parameters={"q": "two"}),
            ]),
            Response(content="done"),
        )
        case = _make_case(mocks=[
            MockConfig(tool_name="search", responses=[MockResponse("s1"), MockResponse("s2")]),
            MockConfig(tool_name="fetch", responses=[MockResponse("page")]),
        ])
        cr = await _runner().run_case(case, _make_prompt(), provider)

        calls = cr.trace.tool_calls()
        assert [(c.tool_name, c.response) for c in calls] == [
            ("search", "s1"), ("fetch", "page"), ("search", "s2"),
        ]
        tool_msgs = [m for m in provider.requests[1].messages if m.role == "tool"]
        assert [(m.tool_call_id, m.content) for m in tool_msgs] == [
            ("a", "s1"), ("b", "page"), ("c", "s2"),
        ]

    @pytest.mark.asyncio
    async def test_each_case_gets_fresh_mocks(self):
        runner = _runner()
        case = _make_case()
        first = await runner.run_case(case, _make_prompt(), CalculatorProvider())
        second = await runner.run_case(case, _make_prompt(), CalculatorProvider())
        assert first.final_response == second.final_response == "The answer is 4."

    @pytest.mark.asyncio
    async def test_prompt_not_mutated(self):
        prompt = _make_prompt()
        await _runner().run_case(_make_case(), prompt, CalculatorProvider())
        assert prompt.user == "What is $question?"

    @pytest.mark.asyncio
    async def test_to_dict(self):
        cr = await _runner().run_case(_make_case(), _make_prompt(), CalculatorProvider())
        d = cr.to_dict()
        assert d["case_name"] == "add"
        assert d["final_response"] == "The answer is 4."
        assert d["trace"]["tool_calls"][0]["response"] == "4"


class TestRunnerConfig:
    def test_zero_concurrency_coerced(self):
        assert Runner(RunnerConfig(concurrency=0)).config.concurrency == 1
        assert Runner(RunnerConfig(concurrency=-3)).config.concurrency == 1

    def test_nonpositive_timeout_uses_default(self):
        assert Runner(RunnerConfig(timeout=0)).config.timeout == 60.0

    def test_defaults(self):
        cfg = Runner().config
        assert cfg.concurrency == 1
        assert cfg.timeout == 60.0
