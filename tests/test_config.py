"""Tests for harness configuration."""

import textwrap

import pytest

from tooleval.config import (
    Config,
    ConfigError,
    ProviderConfig,
    load_config,
    load_config_or_default,
    parse_duration,
)


def _write(tmp_path, content):
    p = tmp_path / "eval.yaml"
    p.write_text(textwrap.dedent(content))
    return str(p)


class TestParseDuration:
    @pytest.mark.parametrize("value,expected", [
        (None, 0.0),
        ("", 0.0),
        (5, 5.0),
        (1.5, 1.5),
        ("30", 30.0),
        ("500ms", 0.5),
        ("30s", 30.0),
        ("2m", 120.0),
        ("1h", 3600.0),
        ("1.5s", 1.5),
    ])
    def test_valid(self, value, expected):
        assert parse_duration(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["soon", "5d", "-1s", True])
    def test_invalid(self, value):
        with pytest.raises(ValueError, match="invalid duration"):
            parse_duration(value)


class TestLoadConfig:
    def test_full(self, tmp_path):
        cfg = load_config(_write(tmp_path, """\
            providers:
              openai:
                model: gpt-4o
                api_key_env: OPENAI_API_KEY
              local:
                model: llama
                base_url: http://localhost:8080/v1/chat/completions
                api_key_env: LOCAL_KEY
            concurrency: 8
            timeout: 2m
            output_dir: out/
            threshold: 0.7
            retry:
              max_retries: 5
              base_delay: 250ms
        """))
        assert cfg.providers["openai"].model == "gpt-4o"
        assert cfg.providers["local"].base_url.startswith("http://localhost")
        assert cfg.concurrency == 8
        assert cfg.timeout == 120.0
        assert cfg.output_dir == "out/"
        assert cfg.threshold == 0.7
        assert cfg.retry.max_retries == 5
        assert cfg.retry.base_delay == pytest.approx(0.25)
        cfg.validate()

    def test_defaults_for_missing_keys(self, tmp_path):
        cfg = load_config(_write(tmp_path, "concurrency: 2\n"))
        assert cfg.concurrency == 2
        assert cfg.timeout == 60.0
        assert cfg.output_dir == "results/"
        assert cfg.threshold == 0.5
        assert cfg.retry.max_retries == 3

    def test_empty_file(self, tmp_path):
        cfg = load_config(_write(tmp_path, ""))
        assert cfg == Config()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))
        assert load_config_or_default(str(tmp_path / "nope.yaml")) == Config()

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(_write(tmp_path, "providers: [unclosed"))

    def test_bad_value(self, tmp_path):
        with pytest.raises(ConfigError, match="Invalid config value"):
            load_config(_write(tmp_path, "concurrency: lots\n"))


class TestValidate:
    def test_defaults_valid(self):
        Config().validate()

    def test_reports_every_problem(self):
        cfg = Config(
            concurrency=0,
            timeout=0,
            output_dir="",
            threshold=1.5,
            providers={"openai": ProviderConfig()},
        )
        with pytest.raises(ConfigError) as exc_info:
            cfg.validate()
        msg = str(exc_info.value)
        for fragment in (
            "concurrency must be >= 1",
            "timeout must be > 0",
            "output_dir must not be empty",
            "threshold must be between 0 and 1",
            "provider 'openai': model is required",
            "provider 'openai': api_key_env is required",
        ):
            assert fragment in msg


class TestResolveApiKey:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("MY_KEY", "sk-test")
        cfg = Config(providers={"openai": ProviderConfig(model="m", api_key_env="MY_KEY")})
        assert cfg.resolve_api_key("openai") == "sk-test"

    def test_unset_env(self, monkeypatch):
        monkeypatch.delenv("MY_KEY", raising=False)
        cfg = Config(providers={"openai": ProviderConfig(model="m", api_key_env="MY_KEY")})
        with pytest.raises(ConfigError, match="MY_KEY"):
            cfg.resolve_api_key("openai")

    def test_unknown_provider(self):
        with pytest.raises(ConfigError, match="not found"):
            Config().resolve_api_key("openai")
