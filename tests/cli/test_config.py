"""Tests for config loading, validation and component wiring."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from cli.config import build_pipeline, load_config
from cli.config_models import LifegraphConfig
from memory.arbiter import LLMArbiter, NullArbiter
from memory.summarizer import ConcatSummarizer, LLMSummarizer


def _write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return path


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml")
        assert config.llm.provider == "auto"
        assert config.memory.hot_days == 7
        assert config.memory.warm_days == 30
        assert config.memory.regenerate_on_merge is False
        assert config.paths.db_path == Path("~/.lifegraph/memory.db").expanduser()

    def test_yaml_values(self, tmp_path):
        path = _write(
            tmp_path,
            "llm:\n  provider: ollama\n  ollama_url: http://gpu-box:11434\n"
            "memory:\n  regenerate_on_merge: true\n  hot_days: 3\n"
            "logging:\n  level: debug\n",
        )
        config = load_config(path)
        assert config.llm.provider == "ollama"
        assert config.memory.regenerate_on_merge is True
        assert config.memory.hot_days == 3
        assert config.logging.level == "DEBUG"

    def test_env_var_api_key(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MY_CLAUDE_KEY", "sk-ant-secret")
        config = load_config(_write(tmp_path, "llm:\n  api_key: ${MY_CLAUDE_KEY}\n"))
        assert config.llm.api_key == "sk-ant-secret"

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config(_write(tmp_path, "llm: [unclosed\n"))

    def test_invalid_values(self, tmp_path):
        with pytest.raises(ValueError, match="Config validation failed"):
            load_config(_write(tmp_path, "llm:\n  provider: gemini\n"))

    def test_tier_windows_validated(self):
        with pytest.raises(ValidationError):
            LifegraphConfig.from_dict({"memory": {"hot_days": 40, "warm_days": 30}})

    def test_roundtrip_dict(self):
        config = LifegraphConfig()
        assert LifegraphConfig.from_dict(config.to_dict()) == config


class TestBuildPipeline:
    def test_without_llm_uses_deterministic_parts(self, tmp_path):
        config = LifegraphConfig.from_dict({"paths": {"db_path": str(tmp_path / "m.db")}})
        pipeline = build_pipeline(config)

        assert isinstance(pipeline.resolver.resolver.arbiter, NullArbiter)
        assert isinstance(pipeline.synthesizer.summarizer, ConcatSummarizer)
        assert pipeline.store.db_path == tmp_path / "m.db"

    def test_with_ollama(self, tmp_path):
        config = LifegraphConfig.from_dict(
            {
                "paths": {"db_path": str(tmp_path / "m.db")},
                "llm": {"provider": "ollama", "ollama_url": "http://gpu-box:11434"},
                "memory": {"summarization_enabled": False, "regenerate_on_merge": True},
            }
        )
        pipeline = build_pipeline(config)

        arbiter = pipeline.resolver.resolver.arbiter
        assert isinstance(arbiter, LLMArbiter)
        assert arbiter._provider.base_url == "http://gpu-box:11434"
        assert isinstance(pipeline.synthesizer.summarizer, ConcatSummarizer)
        assert pipeline.regenerate_on_merge is True

    def test_with_api_key(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        config = LifegraphConfig.from_dict({"paths": {"db_path": str(tmp_path / "m.db")}})

        pipeline = build_pipeline(config)

        assert isinstance(pipeline.synthesizer.summarizer, LLMSummarizer)
        assert pipeline.synthesizer.hot_days == 7
