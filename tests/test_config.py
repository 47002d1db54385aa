"""
Tests for configuration loading and overrides.
"""

import os

import pytest
import yaml
from pydantic import ValidationError

from tiny_coding_agent.utils.config import AgentConfig, ConfigManager


class TestAgentConfig:

    def test_defaults(self):
        config = AgentConfig()
        assert config.llm.provider == "anthropic"
        assert config.llm.max_tokens == 16000
        assert config.llm.subagent_max_tokens == 8000
        assert config.retry.max_retries == 5
        assert config.context.context_limit == 200_000
        assert config.context.auto_compact_ratio == 0.92
        assert config.tools.bash_timeout_ms == 30_000
        assert config.todo_reminder_rounds == 10
        assert config.storage_dir == ".tiny-agent"

    def test_bash_timeout_bounds(self):
        with pytest.raises(ValidationError):
            AgentConfig(tools={"bash_timeout_ms": 500})


class TestConfigManager:
    """File loading, environment overrides and saving."""

    def test_missing_file_gives_defaults(self, tmp_path, clean_environment):
        manager = ConfigManager(tmp_path / "config.yaml")
        assert manager.config.llm.model == AgentConfig().llm.model

    def test_file_values(self, tmp_path, clean_environment):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"llm": {"model": "custom-model"}, "todo_reminder_rounds": 4}))

        config = ConfigManager(path).config

        assert config.llm.model == "custom-model"
        assert config.todo_reminder_rounds == 4

    def test_invalid_file_falls_back_to_defaults(self, tmp_path, clean_environment):
        path = tmp_path / "config.yaml"
        path.write_text("context:\n  context_limit: -5\n")
        assert ConfigManager(path).config.context.context_limit == 200_000

    def test_api_key_from_environment(self, tmp_path, clean_environment):
        os.environ["OPENAI_API_KEY"] = "sk-test"
        config = ConfigManager(tmp_path / "config.yaml").config
        assert config.llm.provider == "openai"
        assert config.llm.api_key == "sk-test"

    def test_model_and_context_overrides(self, tmp_path, clean_environment):
        os.environ["ANTHROPIC_API_KEY"] = "key"
        os.environ["ANTHROPIC_MODEL"] = "claude-test"
        os.environ["TINY_AGENT_CONTEXT_LIMIT"] = "50000"

        config = ConfigManager(tmp_path / "config.yaml").config

        assert config.llm.model == "claude-test"
        assert config.context.context_limit == 50000

    def test_invalid_context_limit_is_ignored(self, tmp_path, clean_environment):
        os.environ["TINY_AGENT_CONTEXT_LIMIT"] = "lots"
        assert ConfigManager(tmp_path / "config.yaml").config.context.context_limit == 200_000

    def test_local_base_url(self, tmp_path, clean_environment):
        os.environ["LLM_BASE_URL"] = "http://localhost:11434/v1"
        config = ConfigManager(tmp_path / "config.yaml").config
        assert config.llm.provider == "local"
        assert config.llm.base_url == "http://localhost:11434/v1"

    def test_set_value(self, tmp_path, clean_environment):
        manager = ConfigManager(tmp_path / "config.yaml")
        manager.set_value("context.context_limit", "64000")
        assert manager.config.context.context_limit == 64000

        with pytest.raises(KeyError):
            manager.set_value("llm.no_such_key", 1)
        with pytest.raises(ValidationError):
            manager.set_value("retry.max_retries", -1)

    def test_save_strips_api_key(self, tmp_path, clean_environment):
        path = tmp_path / "nested" / "config.yaml"
        manager = ConfigManager(path)
        manager.config.llm.api_key = "secret"
        manager.config.llm.model = "saved-model"

        manager.save_config()

        data = yaml.safe_load(path.read_text())
        assert data["llm"]["api_key"] is None
        assert data["llm"]["model"] == "saved-model"

    def test_storage_path(self, tmp_path, clean_environment):
        manager = ConfigManager(tmp_path / "config.yaml")
        assert manager.storage_path(tmp_path / "ws") == tmp_path / "ws" / ".tiny-agent"
