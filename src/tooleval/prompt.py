"""Prompt variants: system/user templates plus the tools offered to the model."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from string import Template
from typing import Any, Dict, List, Mapping

from tooleval.providers import Tool


class PromptError(Exception):
    """Raised when a prompt cannot be rendered."""


@dataclass
class ToolDefinition:
    """A tool the model can invoke; ``parameters`` is a JSON Schema."""
    name: str
    description: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_tool(self) -> Tool:
        return Tool(name=self.name, description=self.description, parameters=dict(self.parameters))


@dataclass
class PromptVariant:
    """A prompt template, rendered per case with the case's input variables.

    Templates use ``$name`` / ``${name}`` placeholders; ``$$`` is a literal
    dollar sign.
    """
    name: str
    system: str = ""
    user: str = ""
    description: str = ""
    tools: List[ToolDefinition] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        if not self.name:
            raise PromptError("prompt name is required")
        if not self.system and not self.user:
            raise PromptError(f"prompt {self.name!r} must have at least a system or user prompt")

    def interpolate(self, variables: Mapping[str, Any]) -> "PromptVariant":
        """Return a copy with system and user rendered; self is left untouched.

        Raises:
            PromptError: If a template references a variable not in ``variables``
                or is malformed.
        """
        system = _render(f"{self.name}.system", self.system, variables)
        user = _render(f"{self.name}.user", self.user, variables)
        return replace(self, system=system, user=user)

    def tool_schemas(self) -> List[Tool]:
        return [t.to_tool() for t in self.tools]


def _render(label: str, text: str, variables: Mapping[str, Any]) -> str:
    if not text:
        return ""
    try:
        return Template(text).substitute(variables)
    except KeyError as exc:
        raise PromptError(f"interpolating {label}: missing variable {exc.args[0]!r}") from exc
    except ValueError as exc:
        raise PromptError(f"interpolating {label}: {exc}") from exc
