"""Data models for a goal run: settings, session, progress messages."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Tuple

import jsonschema

from agentic_goal_runner.constants import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL_NAME,
    DEFAULT_TEMPERATURE,
    MAX_LOOPS_RANGE,
    MAX_TOKENS_RANGE,
    TEMPERATURE_RANGE,
)


MessageType = Literal["goal", "thinking", "task", "action", "system"]
MESSAGE_TYPES = ["goal", "thinking", "task", "action", "system"]


# =============================================================================
# RUN STATES
# =============================================================================

IDLE = "IDLE"
BOOTSTRAPPING = "BOOTSTRAPPING"
EXECUTING = "EXECUTING"
EXPANDING = "EXPANDING"
HALTED_SUCCESS = "HALTED_SUCCESS"
HALTED_BUDGET = "HALTED_BUDGET"
HALTED_ERROR = "HALTED_ERROR"
HALTED_MANUAL = "HALTED_MANUAL"

HALTED_STATES = frozenset({HALTED_SUCCESS, HALTED_BUDGET, HALTED_ERROR, HALTED_MANUAL})


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class ModelSettings:
    """Caller-supplied model configuration.

    The run loop only inspects `custom_api_key` and `custom_max_loops`; the
    rest is passed through to the task provider. Out-of-range values raise
    ValueError on construction.
    """
    custom_api_key: Optional[str] = None
    custom_model_name: str = DEFAULT_MODEL_NAME
    custom_temperature: float = DEFAULT_TEMPERATURE
    custom_max_loops: Optional[int] = None
    max_tokens: int = DEFAULT_MAX_TOKENS

    def __post_init__(self):
        _check_range("custom_temperature", self.custom_temperature, TEMPERATURE_RANGE)
        _check_range("max_tokens", self.max_tokens, MAX_TOKENS_RANGE)
        if self.custom_max_loops is not None:
            _check_range("custom_max_loops", self.custom_max_loops, MAX_LOOPS_RANGE)

    @property
    def has_custom_api_key(self) -> bool:
        return bool(self.custom_api_key)

    def to_dict(self) -> Dict[str, Any]:
        """Wire form used by the intermediary service."""
        data: Dict[str, Any] = {
            "customModelName": self.custom_model_name,
            "customTemperature": self.custom_temperature,
            "maxTokens": self.max_tokens,
        }
        if self.custom_api_key:
            data["customApiKey"] = self.custom_api_key
        if self.custom_max_loops is not None:
            data["customMaxLoops"] = self.custom_max_loops
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ModelSettings":
        """
        Build settings from a goal definition (snake_case keys).

        Raises:
            ValueError: if a value is not a number or is out of range
        """
        data = data or {}
        return cls(
            custom_api_key=data.get("custom_api_key"),
            custom_model_name=data.get("custom_model_name") or DEFAULT_MODEL_NAME,
            custom_temperature=_number(data, "custom_temperature", float, DEFAULT_TEMPERATURE),
            custom_max_loops=_number(data, "custom_max_loops", int, None),
            max_tokens=_number(data, "max_tokens", int, DEFAULT_MAX_TOKENS),
        )


def _number(data: Dict[str, Any], key: str, cast: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ValueError(f"model_settings.{key} must be a number, got {value!r}")


def _check_range(name: str, value: float, bounds: Tuple[float, float]) -> None:
    low, high = bounds
    if not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}, got {value}")


@dataclass
class Session:
    """An authenticated user session. A subscription makes it privileged."""
    user_id: str
    subscription_id: Optional[str] = None

    @property
    def is_privileged(self) -> bool:
        return bool(self.subscription_id)


@dataclass
class Message:
    """A progress event emitted by a run."""
    type: MessageType
    value: str
    info: Optional[str] = None
    loop_number: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type, "value": self.value}
        if self.info is not None:
            data["info"] = self.info
        if self.loop_number is not None:
            data["loopNumber"] = self.loop_number
        return data


# =============================================================================
# MESSAGE SCHEMA
# =============================================================================

MESSAGE_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "type": {"type": "string", "enum": MESSAGE_TYPES},
        "info": {"type": "string"},
        "value": {"type": "string"},
        "loopNumber": {"type": "integer", "minimum": 0},
    },
    "required": ["type", "value"],
}


def message_errors(data: Any) -> List[str]:
    """Return ALL schema violations for a serialised message."""
    validator = jsonschema.Draft7Validator(MESSAGE_SCHEMA)
    errors = []
    for error in validator.iter_errors(data):
        path = ".".join(str(p) for p in error.absolute_path) if error.absolute_path else "(root)"
        errors.append(f"{error.message} at {path}")
    return errors


def parse_message(data: Any) -> Message:
    """
    Validate a serialised message and build a Message.

    Raises:
        ValueError: listing every schema violation
    """
    errors = message_errors(data)
    if errors:
        raise ValueError(f"Invalid message ({len(errors)} error(s)): " + "; ".join(errors))

    return Message(
        type=data["type"],
        value=data["value"],
        info=data.get("info"),
        loop_number=data.get("loopNumber"),
    )


@dataclass
class RunSnapshot:
    """Point-in-time view of a run, used for reports."""
    run_id: str
    name: str
    goal: str
    state: str
    num_loops: int
    loop_budget: int
    tasks: List[str] = field(default_factory=list)
    completed_tasks: List[str] = field(default_factory=list)
