"""Configuration loading for the goal runner."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from agentic_goal_runner.constants import (
    DEFAULT_OPENAI_API_BASE,
    DEFAULT_REQUEST_TIMEOUT_S,
    DEFAULT_STEP_DELAY_S,
    DEFAULT_TASK_DELAY_S,
)


TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class Config:
    """Application configuration loaded from environment.

    Passed explicitly into the controller and the transports; nothing in the
    run loop reads process environment on its own.
    """

    agent_api_url: Optional[str] = None
    openai_api_base: str = DEFAULT_OPENAI_API_BASE
    mock_mode_enabled: bool = False
    task_delay: float = DEFAULT_TASK_DELAY_S
    step_delay: float = DEFAULT_STEP_DELAY_S
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_S
    debug: bool = False


class ConfigError(Exception):
    """Raised when required configuration is missing."""
    pass


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in TRUTHY


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def load_config(require_all: bool = False) -> Config:
    """
    Load configuration from environment variables.

    Args:
        require_all: If True, raises ConfigError if the intermediary service
                     URL is missing. Runs that only use a custom API key do
                     not need it.

    Returns:
        Config object.

    Raises:
        ConfigError: If require_all=True and required vars are missing, or a
                     numeric variable does not parse.
    """
    load_dotenv()

    agent_api_url = os.environ.get("GOAL_RUNNER_API_URL")

    missing = []
    if not agent_api_url:
        missing.append("GOAL_RUNNER_API_URL")

    if missing and require_all:
        raise ConfigError(
            f"Missing required environment variables: {', '.join(missing)}\n"
            f"Please set them in your environment or create a .env file."
        )

    return Config(
        agent_api_url=agent_api_url or None,
        openai_api_base=os.environ.get("OPENAI_API_BASE") or DEFAULT_OPENAI_API_BASE,
        mock_mode_enabled=_env_flag("GOAL_RUNNER_MOCK_MODE"),
        task_delay=_env_float("GOAL_RUNNER_TASK_DELAY_S", DEFAULT_TASK_DELAY_S),
        step_delay=_env_float("GOAL_RUNNER_STEP_DELAY_S", DEFAULT_STEP_DELAY_S),
        request_timeout=_env_float("GOAL_RUNNER_REQUEST_TIMEOUT_S", DEFAULT_REQUEST_TIMEOUT_S),
        debug=_env_flag("GOAL_RUNNER_DEBUG"),
    )
