"""Prompts and output parsing for the direct transport."""

import json
import re
from typing import List

import jsonschema


START_GOAL_PROMPT = """You are an autonomous task creation AI called GoalRunner.
Your objective is: `{goal}`.
Create a list of zero to three tasks that your AI system will complete so that the
objective is more closely or completely reached.
Return the response as a JSON array of strings and NOTHING ELSE."""

EXECUTE_TASK_PROMPT = """You are an autonomous task execution AI called GoalRunner.
Your objective is: `{goal}`.
Your current task is: `{task}`.
Execute the task and return the result as plain text."""

CREATE_TASKS_PROMPT = """You are an AI task creation agent.
Your objective is: `{goal}`.
Incomplete tasks: `{tasks}`.
Completed tasks: `{completed_tasks}`.
You have just executed the task `{last_task}` and received the result `{result}`.
Based on this, create new tasks for your AI system ONLY IF NEEDED so that the
objective is more closely or completely reached.
Return the response as a JSON array of strings and NOTHING ELSE."""


TASK_LIST_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "array",
    "items": {"type": "string"},
}

# Entries models emit to mean "nothing more to do"
PLACEHOLDER_TASK_PATTERNS = [
    r"^no( additional| new| more)? tasks?",
    r"^task (is )?complete",
    r"^none\.?$",
]


class TaskParseError(ValueError):
    """Raised when a completion does not contain a task array."""
    pass


def _extract_array_text(content: str) -> str:
    """Find the first JSON array in a completion (fences and prose allowed)."""
    match = re.search(r"\[.*\]", content, re.DOTALL)
    if not match:
        raise TaskParseError(f"No task array found in response: {content[:100]!r}")
    return match.group(0)


def is_placeholder_task(task: str) -> bool:
    text = task.strip().lower()
    if not text:
        return True
    return any(re.search(p, text) for p in PLACEHOLDER_TASK_PATTERNS)


def extract_tasks(content: str) -> List[str]:
    """
    Parse a task list out of a model completion.

    Returns:
        Task strings in model order, stripped, without placeholder entries.

    Raises:
        TaskParseError: if no JSON array of strings is present
    """
    try:
        data = json.loads(_extract_array_text(content))
    except json.JSONDecodeError as e:
        raise TaskParseError(f"Task array is not valid JSON: {e}")

    try:
        jsonschema.validate(data, TASK_LIST_SCHEMA)
    except jsonschema.ValidationError as e:
        raise TaskParseError(f"Task array has wrong shape: {e.message}")

    return [task.strip() for task in data if not is_placeholder_task(task)]
