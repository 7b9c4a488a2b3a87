"""YAML suite and prompt loaders for tooleval."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import yaml

from tooleval.config import parse_duration
from tooleval.judges import available_judges
from tooleval.models import EvalCase, EvalSuite, JudgeSpec, MockConfig, MockResponse
from tooleval.prompt import PromptVariant, ToolDefinition

_YAML_SUFFIXES = {".yaml", ".yml"}


class LoadError(Exception):
    """Raised when a suite or prompt file cannot be loaded or is invalid."""


def _read_yaml(path: str) -> Dict[str, Any]:
    filepath = Path(path)
    if not filepath.exists():
        raise LoadError(f"File not found: {path}")

    try:
        with open(filepath) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise LoadError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise LoadError(f"{path} must contain a YAML mapping, got {type(data).__name__}")
    return data


def _yaml_files(directory: str) -> List[Path]:
    dirpath = Path(directory)
    if not dirpath.is_dir():
        raise LoadError(f"Directory not found: {directory}")
    return sorted(p for p in dirpath.iterdir() if p.is_file() and p.suffix.lower() in _YAML_SUFFIXES)


def _mock_response(data: Any, where: str) -> MockResponse:
    if isinstance(data, str):
        return MockResponse(content=data)
    if not isinstance(data, dict):
        raise LoadError(f"{where}: mock response must be a string or mapping")
    try:
        delay = parse_duration(data.get("delay"))
    except ValueError as e:
        raise LoadError(f"{where}: {e}") from e
    return MockResponse(
        content=str(data.get("content", "")),
        error=str(data.get("error") or ""),
        delay=delay,
    )


def _mocks(items: Any, where: str) -> List[MockConfig]:
    mocks = []
    for i, m in enumerate(items or []):
        if not isinstance(m, dict) or "tool_name" not in m:
            raise LoadError(f"{where}: mock {i} missing required field: 'tool_name'")
        default = m.get("default_response")
        mocks.append(MockConfig(
            tool_name=m["tool_name"],
            responses=[_mock_response(r, f"{where} mock {m['tool_name']!r}") for r in m.get("responses") or []],
            default_response=(
                _mock_response(default, f"{where} mock {m['tool_name']!r}") if default is not None else None
            ),
        ))
    return mocks


def _judges(items: Any, where: str) -> List[JudgeSpec]:
    judges = []
    for i, j in enumerate(items or []):
        if not isinstance(j, dict) or "type" not in j:
            raise LoadError(f"{where}: judge {i} missing required field: 'type'")
        if j["type"] not in available_judges():
            raise LoadError(
                f"{where}: invalid judge type {j['type']!r}. "
                f"Valid judges: {', '.join(available_judges())}"
            )
        value = j.get("value", "")
        judges.append(JudgeSpec(
            type=j["type"],
            value=value if isinstance(value, str) else json.dumps(value),
            weight=float(j.get("weight", 0) or 0),
            comment=str(j.get("comment", "")),
            config=dict(j.get("config") or {}),
        ))
    return judges


def load_suite(path: str) -> EvalSuite:
    """Load an EvalSuite from a YAML file.

    Suite-level ``default_judges`` and ``default_mocks`` are merged into
    cases that specify none of their own.

    Raises:
        LoadError: If the file is missing, invalid YAML, or fails validation.
    """
    data = _read_yaml(path)

    # Required fields
    if "name" not in data:
        raise LoadError("Suite missing required field: 'name'")
    if "cases" not in data:
        raise LoadError("Suite missing required field: 'cases'")
    if not isinstance(data["cases"], list) or len(data["cases"]) == 0:
        raise LoadError("Suite 'cases' must be a non-empty list")

    cases = []
    for i, case_data in enumerate(data["cases"]):
        if not isinstance(case_data, dict):
            raise LoadError(f"Case {i} must be a mapping")
        if "name" not in case_data:
            raise LoadError(f"Case {i} missing required field: 'name'")
        where = f"Case {case_data['name']!r}"

        case_input = case_data.get("input") or {}
        if not isinstance(case_input, dict):
            raise LoadError(f"{where}: 'input' must be a mapping of variables")
        try:
            timeout = parse_duration(case_data.get("timeout")) or None
        except ValueError as e:
            raise LoadError(f"{where}: {e}") from e

        cases.append(EvalCase(
            id=str(case_data.get("id", "")),
            name=case_data["name"],
            input=case_input,
            context=str(case_data.get("context", "")),
            timeout=timeout,
            tags=list(case_data.get("tags") or []),
            mocks=_mocks(case_data.get("mocks"), where),
            judges=_judges(case_data.get("judges"), where),
            expected_output=str(case_data.get("expected_output", "")),
            expected_tools=list(case_data.get("expected_tools") or []),
        ))

    suite = EvalSuite(
        name=data["name"],
        cases=cases,
        description=str(data.get("description", "")),
        prompt=str(data.get("prompt", "")),
        default_judges=_judges(data.get("default_judges"), "Suite defaults"),
        default_mocks=_mocks(data.get("default_mocks"), "Suite defaults"),
    )
    suite.apply_defaults()
    return suite


def load_suite_dir(directory: str) -> List[EvalSuite]:
    """Load every .yaml/.yml file in ``directory`` as a suite."""
    return [load_suite(str(p)) for p in _yaml_files(directory)]


def load_prompt(path: str) -> PromptVariant:
    """Load a PromptVariant from a YAML file."""
    data = _read_yaml(path)
    tools = []
    for i, t in enumerate(data.get("tools") or []):
        if not isinstance(t, dict) or "name" not in t:
            raise LoadError(f"Prompt tool {i} missing required field: 'name'")
        tools.append(ToolDefinition(
            name=t["name"],
            description=str(t.get("description", "")),
            parameters=dict(t.get("parameters") or {}),
        ))
    return PromptVariant(
        name=str(data.get("name", "")),
        description=str(data.get("description", "")),
        system=str(data.get("system", "")),
        user=str(data.get("user", "")),
        tools=tools,
        metadata={str(k): str(v) for k, v in (data.get("metadata") or {}).items()},
    )


def load_prompt_dir(directory: str) -> List[PromptVariant]:
    """Load every .yaml/.yml file in ``directory`` as a prompt."""
    return [load_prompt(str(p)) for p in _yaml_files(directory)]
