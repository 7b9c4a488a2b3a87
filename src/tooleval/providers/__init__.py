"""Model provider protocol, request/response types and registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol


class ProviderError(Exception):
    """Raised when a provider call fails for good (after any retries)."""


@dataclass
class ToolCall:
    """A tool invocation requested by the model."""
    id: str
    name: str
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Message:
    """A single message in a provider conversation."""
    role: str
    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    tool_call_id: str = ""


@dataclass
class Tool:
    """A tool the model may invoke; ``parameters`` is a JSON Schema."""
    name: str
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Request:
    """A completion request."""
    messages: List[Message]
    model: str = ""
    system: str = ""
    tools: List[Tool] = field(default_factory=list)
    temperature: float = 0.0
    max_tokens: int = 0


@dataclass
class Usage:
    """Token consumption of a single request."""
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class Response:
    """A completion response: text and/or requested tool calls."""
    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    stop_reason: str = ""


class Provider(Protocol):
    """Protocol that all model providers must satisfy.

    Retries are the provider's business; any exception escaping
    ``complete`` is final for that call.
    """

    name: str

    async def complete(self, request: Request) -> Response: ...


_PROVIDER_REGISTRY: Dict[str, type] = {}


def _ensure_registry() -> None:
    if _PROVIDER_REGISTRY:
        return
    from tooleval.providers.anthropic import AnthropicProvider
    from tooleval.providers.openai import OpenAIProvider

    _PROVIDER_REGISTRY.update({
        "anthropic": AnthropicProvider,
        "openai": OpenAIProvider,
    })


def get_provider(name: str, api_key: str, **options: Any) -> Provider:
    """Get a provider instance by name."""
    _ensure_registry()
    if name not in _PROVIDER_REGISTRY:
        raise ValueError(f"Unknown provider: {name!r}. Available: {sorted(_PROVIDER_REGISTRY)}")
    return _PROVIDER_REGISTRY[name](api_key, **options)
