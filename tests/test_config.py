"""Tests for environment-driven configuration."""

import pytest

from agentic_goal_runner.config import ConfigError, load_config
from agentic_goal_runner.constants import (
    DEFAULT_OPENAI_API_BASE,
    DEFAULT_STEP_DELAY_S,
    DEFAULT_TASK_DELAY_S,
)


ENV_VARS = [
    "GOAL_RUNNER_API_URL",
    "OPENAI_API_BASE",
    "GOAL_RUNNER_MOCK_MODE",
    "GOAL_RUNNER_TASK_DELAY_S",
    "GOAL_RUNNER_STEP_DELAY_S",
    "GOAL_RUNNER_REQUEST_TIMEOUT_S",
    "GOAL_RUNNER_DEBUG",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()
        assert config.agent_api_url is None
        assert config.openai_api_base == DEFAULT_OPENAI_API_BASE
        assert config.mock_mode_enabled is False
        assert config.task_delay == DEFAULT_TASK_DELAY_S
        assert config.step_delay == DEFAULT_STEP_DELAY_S
        assert config.debug is False

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("GOAL_RUNNER_API_URL", "https://agent.test")
        monkeypatch.setenv("GOAL_RUNNER_MOCK_MODE", "true")
        monkeypatch.setenv("GOAL_RUNNER_TASK_DELAY_S", "0")
        monkeypatch.setenv("GOAL_RUNNER_STEP_DELAY_S", "0.25")
        monkeypatch.setenv("GOAL_RUNNER_DEBUG", "1")

        config = load_config(require_all=True)

        assert config.agent_api_url == "https://agent.test"
        assert config.mock_mode_enabled is True
        assert config.task_delay == 0
        assert config.step_delay == 0.25
        assert config.debug is True

    def test_require_all_reports_missing(self):
        with pytest.raises(ConfigError) as exc_info:
            load_config(require_all=True)
        assert "GOAL_RUNNER_API_URL" in str(exc_info.value)

    def test_bad_number(self, monkeypatch):
        monkeypatch.setenv("GOAL_RUNNER_STEP_DELAY_S", "soon")
        with pytest.raises(ConfigError) as exc_info:
            load_config()
        assert "GOAL_RUNNER_STEP_DELAY_S" in str(exc_info.value)
