"""Demo provider that returns predictable responses, no API key needed.

    tooleval run --suite demo/suites/demo.yaml --provider demo.demo_provider:DemoProvider
"""

from tooleval.providers import Request, Response, ToolCall, Usage

# Question -> (tool to call first or None, final answer template)
_SCRIPTS = {
    "What is 2 + 2?": ("calculator", "The answer is {tool}."),
    "What is the capital of France?": (None, "The capital of France is Paris."),
    "What is the weather in NYC?": ("web_search", "According to my search: {tool}"),
    "List 3 primary colors": (None, "1. Red\n2. Blue\n3. Yellow"),
}


class DemoProvider:
    name = "demo"

    async def complete(self, request: Request) -> Response:
        question = next((m.content for m in request.messages if m.role == "user"), "")
        tool_result = next((m.content for m in request.messages if m.role == "tool"), None)
        tool, answer = _SCRIPTS.get(question, (None, "I don't know."))

        if tool and tool_result is None:
            return Response(
                tool_calls=[ToolCall(id="call-1", name=tool, parameters={"query": question})],
                usage=Usage(input_tokens=40, output_tokens=12),
                stop_reason="tool_use",
            )
        return Response(
            content=answer.format(tool=tool_result),
            usage=Usage(input_tokens=60, output_tokens=20),
            stop_reason="end_turn",
        )
