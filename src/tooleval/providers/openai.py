"""OpenAI Chat Completions provider."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx

from tooleval.providers import Message, ProviderError, Request, Response, ToolCall, Usage
from tooleval.providers.http import (
    BASE_BACKOFF,
    DEFAULT_MAX_RETRIES,
    api_error_message,
    post_json,
)

DEFAULT_OPENAI_URL = "https://api.openai.com/v1/chat/completions"


class OpenAIProvider:
    """Provider for the OpenAI (or any compatible) Chat Completions API."""

    name = "openai"

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
        self.base_url = base_url or DEFAULT_OPENAI_URL
        self.client = client
        self.max_retries = max_retries
        self.base_backoff = base_backoff

    async def complete(self, request: Request) -> Response:
        body = build_request_body(request)
        data = await post_json(
            self.base_url,
            {"Authorization": f"Bearer {self.api_key}"},
            body,
            vendor="openai",
            client=self.client,
            max_retries=self.max_retries,
            base_backoff=self.base_backoff,
            error_message=api_error_message,
        )
        return parse_response(data)


def build_request_body(request: Request) -> Dict[str, Any]:
    messages: List[Dict[str, Any]] = []
    if request.system:
        messages.append({"role": "system", "content": request.system})
    messages.extend(_convert_message(m) for m in request.messages)

    body: Dict[str, Any] = {"model": request.model, "messages": messages}
    if request.tools:
        body["tools"] = [
            {
                "type": "function",
                "function": {
                    "name": t.name,
                    "description": t.description,
                    "parameters": t.parameters,
                },
            }
            for t in request.tools
        ]
    if request.temperature:
        body["temperature"] = request.temperature
    if request.max_tokens:
        body["max_tokens"] = request.max_tokens
    return body


def _convert_message(m: Message) -> Dict[str, Any]:
    out: Dict[str, Any] = {"role": m.role, "content": m.content}
    if m.tool_calls:
        # Assistant turns that only call tools carry null content.
        out["content"] = m.content or None
        out["tool_calls"] = [
            {
                "id": tc.id,
                "type": "function",
                "function": {"name": tc.name, "arguments": json.dumps(tc.parameters)},
            }
            for tc in m.tool_calls
        ]
    if m.tool_call_id:
        out["tool_call_id"] = m.tool_call_id
    return out


def parse_response(data: Dict[str, Any]) -> Response:
    choices = data.get("choices") or []
    if not choices:
        raise ProviderError("openai response contained no choices")
    choice = choices[0]
    message = choice.get("message") or {}

    tool_calls = []
    for tc in message.get("tool_calls") or []:
        fn = tc.get("function") or {}
        raw_args = fn.get("arguments") or "{}"
        try:
            params = json.loads(raw_args)
        except json.JSONDecodeError as exc:
            raise ProviderError(
                f"parsing arguments for tool call {fn.get('name')!r}: {exc}"
            ) from exc
        tool_calls.append(ToolCall(id=tc.get("id", ""), name=fn.get("name", ""), parameters=params))

    usage = data.get("usage") or {}
    return Response(
        content=message.get("content") or "",
        tool_calls=tool_calls,
        usage=Usage(
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
        ),
        stop_reason=choice.get("finish_reason") or "",
    )
