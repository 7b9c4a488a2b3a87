"""Harness configuration (eval.yaml)."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


class ConfigError(Exception):
    """Raised when a config file cannot be loaded or is invalid."""


def parse_duration(value: Union[int, float, str, None]) -> float:
    """Parse a duration into seconds.

    Numbers are taken as seconds; strings may carry a unit suffix
    (``"500ms"``, ``"30s"``, ``"2m"``, ``"1h"``). ``None`` and ``""`` are 0.
    """
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(str(value))
    if match is None:
        raise ValueError(f"invalid duration: {value!r}")
    number, unit = match.groups()
    return float(number) * _UNIT_SECONDS[unit or "s"]


@dataclass
class ProviderConfig:
    model: str = ""
    base_url: str = ""
    api_key_env: str = ""


@dataclass
class RetryConfig:
    max_retries: int = 3
    base_delay: float = 1.0


@dataclass
class Config:
    """Top-level harness settings."""
    providers: Dict[str, ProviderConfig] = field(default_factory=dict)
    concurrency: int = 5
    timeout: float = 60.0
    output_dir: str = "results/"
    threshold: float = 0.5
    retry: RetryConfig = field(default_factory=RetryConfig)

    def validate(self) -> None:
        """Raise ConfigError listing every problem found."""
        errors: List[str] = []
        if self.concurrency < 1:
            errors.append(f"concurrency must be >= 1, got {self.concurrency}")
        if self.timeout <= 0:
            errors.append(f"timeout must be > 0, got {self.timeout}")
        if not self.output_dir:
            errors.append("output_dir must not be empty")
        if not 0.0 <= self.threshold <= 1.0:
            errors.append(f"threshold must be between 0 and 1, got {self.threshold}")
        if self.retry.max_retries < 0:
            errors.append(f"retry.max_retries must be >= 0, got {self.retry.max_retries}")
        if self.retry.base_delay < 0:
            errors.append(f"retry.base_delay must be >= 0, got {self.retry.base_delay}")
        for name, p in sorted(self.providers.items()):
            if not p.model:
                errors.append(f"provider {name!r}: model is required")
            if not p.api_key_env:
                errors.append(f"provider {name!r}: api_key_env is required")
        if errors:
            raise ConfigError("; ".join(errors))

    def resolve_api_key(self, provider_name: str) -> str:
        """Read the API key for ``provider_name`` from its configured env var."""
        p = self.providers.get(provider_name)
        if p is None:
            raise ConfigError(f"provider {provider_name!r} not found in config")
        if not p.api_key_env:
            raise ConfigError(f"provider {provider_name!r} has no api_key_env configured")
        key = os.environ.get(p.api_key_env, "")
        if not key:
            raise ConfigError(
                f"environment variable {p.api_key_env} for provider {provider_name!r} is not set"
            )
        return key


def load_config(path: str) -> Config:
    """Load a Config from YAML, starting from the defaults.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ConfigError: If the file is not valid YAML or has bad values.
    """
    filepath = Path(path)
    with open(filepath) as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a YAML mapping, got {type(data).__name__}")
    return _config_from_dict(data)


def load_config_or_default(path: str) -> Config:
    """Like :func:`load_config`, but a missing file yields the defaults."""
    try:
        return load_config(path)
    except FileNotFoundError:
        return Config()


def _config_from_dict(data: Dict[str, Any]) -> Config:
    cfg = Config()
    try:
        for name, p in (data.get("providers") or {}).items():
            p = p or {}
            cfg.providers[name] = ProviderConfig(
                model=str(p.get("model", "")),
                base_url=str(p.get("base_url", "")),
                api_key_env=str(p.get("api_key_env", "")),
            )
        if "concurrency" in data:
            cfg.concurrency = int(data["concurrency"])
        if "timeout" in data:
            cfg.timeout = parse_duration(data["timeout"])
        if "output_dir" in data:
            cfg.output_dir = str(data["output_dir"] or "")
        if "threshold" in data:
            cfg.threshold = float(data["threshold"])
        retry = data.get("retry") or {}
        if "max_retries" in retry:
            cfg.retry.max_retries = int(retry["max_retries"])
        if "base_delay" in retry:
            cfg.retry.base_delay = parse_duration(retry["base_delay"])
    except (TypeError, ValueError, AttributeError) as e:
        raise ConfigError(f"Invalid config value: {e}") from e
    return cfg
