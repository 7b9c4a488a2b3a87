"""Anthropic Messages API provider."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from tooleval.providers import Message, Request, Response, ToolCall, Usage
from tooleval.providers.http import (
    BASE_BACKOFF,
    DEFAULT_MAX_RETRIES,
    api_error_message,
    post_json,
)

DEFAULT_ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 4096


class AnthropicProvider:
    """Provider for the Anthropic Messages API."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "",
        client: Optional[httpx.AsyncClient] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_backoff: float = BASE_BACKOFF,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url or DEFAULT_ANTHROPIC_URL
        self.client = client
        self.max_retries = max_retries
        self.base_backoff = base_backoff

    async def complete(self, request: Request) -> Response:
        data = await post_json(
            self.base_url,
            {"X-Api-Key": self.api_key, "Anthropic-Version": ANTHROPIC_VERSION},
            build_request_body(request),
            vendor="anthropic",
            client=self.client,
            max_retries=self.max_retries,
            base_backoff=self.base_backoff,
            error_message=api_error_message,
        )
        return parse_response(data)


def build_request_body(request: Request) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "model": request.model,
        "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
        "messages": [_convert_message(m) for m in request.messages],
    }
    if request.system:
        body["system"] = request.system
    if request.temperature:
        body["temperature"] = request.temperature
    if request.tools:
        body["tools"] = [
            {"name": t.name, "description": t.description, "input_schema": t.parameters}
            for t in request.tools
        ]
    return body


def _convert_message(m: Message) -> Dict[str, Any]:
    if m.role == "tool":
        # Tool results travel as user turns with structured content.
        return {
            "role": "user",
            "content": [
                {"type": "tool_result", "tool_use_id": m.tool_call_id, "content": m.content},
            ],
        }
    if m.tool_calls:
        blocks: List[Dict[str, Any]] = []
        if m.content:
            blocks.append({"type": "text", "text": m.content})
        for tc in m.tool_calls:
            blocks.append({"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.parameters})
        return {"role": m.role, "content": blocks}
    return {"role": m.role, "content": m.content}


def parse_response(data: Dict[str, Any]) -> Response:
    texts = []
    tool_calls = []
    for block in data.get("content") or []:
        kind = block.get("type")
        if kind == "text":
            texts.append(block.get("text", ""))
        elif kind == "tool_use":
            tool_calls.append(ToolCall(
                id=block.get("id", ""),
                name=block.get("name", ""),
                parameters=block.get("input") or {},
            ))

    usage = data.get("usage") or {}
    return Response(
        content="\n".join(texts),
        tool_calls=tool_calls,
        usage=Usage(
            input_tokens=usage.get("input_tokens", 0),
            output_tokens=usage.get("output_tokens", 0),
        ),
        stop_reason=data.get("stop_reason") or "",
    )
