"""Tests for the execution trace."""

import dataclasses
import threading

import pytest

from tooleval.trace import AgentTrace, ToolCallRecord


class TestAgentTrace:
    def test_messages_keep_call_order(self):
        tr = AgentTrace()
        tr.add_message("user", "hi")
        tr.add_message("assistant", "hello")
        tr.add_message("tool", "42")
        assert [(m.role, m.content) for m in tr.messages()] == [
            ("user", "hi"), ("assistant", "hello"), ("tool", "42"),
        ]

    def test_message_timestamps_non_decreasing(self):
        tr = AgentTrace()
        for i in range(5):
            tr.add_message("user", str(i))
        stamps = [m.timestamp for m in tr.messages()]
        assert stamps == sorted(stamps)

    def test_usage_accumulates(self):
        tr = AgentTrace()
        for _ in range(3):
            tr.add_usage(100, 50)
        usage = tr.usage()
        assert usage.input_tokens == 300
        assert usage.output_tokens == 150
        assert usage.total_tokens == 450

    def test_accessors_return_copies(self):
        tr = AgentTrace()
        tr.add_message("user", "hi")
        tr.add_tool_call(ToolCallRecord(tool_name="search", parameters={"q": "x"}))
        tr.add_usage(1, 2)

        tr.messages().clear()
        tr.messages()[0].content = "mutated"
        tr.tool_calls()[0].parameters["q"] = "mutated"
        tr.usage().input_tokens = 999

        assert tr.messages()[0].content == "hi"
        assert tr.tool_calls()[0].parameters == {"q": "x"}
        assert tr.usage().input_tokens == 1

    def test_tool_call_records_are_frozen(self):
        rec = ToolCallRecord(tool_name="search", response="ok")
        with pytest.raises(dataclasses.FrozenInstanceError):
            rec.response = "changed"

    def test_tool_call_record_appended_as_is(self):
        tr = AgentTrace()
        rec = ToolCallRecord(tool_name="search", parameters={"q": "x"}, error="cancelled")
        tr.add_tool_call(rec)
        assert tr.tool_calls() == [rec]

    def test_finish_sets_end_and_duration(self):
        tr = AgentTrace()
        assert tr.end_time is None
        tr.finish()
        assert tr.end_time is not None
        assert tr.end_time >= tr.start_time
        assert tr.duration >= 0

    def test_to_dict(self):
        tr = AgentTrace()
        tr.add_message("user", "hi")
        tr.add_tool_call(ToolCallRecord(tool_name="search", response="ok"))
        tr.add_usage(3, 4)
        tr.finish()
        d = tr.to_dict()
        assert d["messages"][0]["role"] == "user"
        assert d["tool_calls"][0]["tool_name"] == "search"
        assert d["usage"] == {"input_tokens": 3, "output_tokens": 4, "total_tokens": 7}
        assert d["end_time"] is not None

    def test_concurrent_writers(self):
        tr = AgentTrace()

        def worker():
            for _ in range(200):
                tr.add_usage(1, 1)
                tr.add_message("user", "x")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert tr.usage().total_tokens == 8 * 200 * 2
        assert len(tr.messages()) == 8 * 200
