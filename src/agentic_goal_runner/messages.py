"""User-facing progress text and bootstrap failure classification."""

from typing import Dict, List

from agentic_goal_runner.model_client import TaskProviderError


ALL_TASKS_COMPLETED = "All tasks completed. Shutting down."
MANUAL_SHUTDOWN = "The agent has been manually shutdown."

LOOP_LIMIT_CUSTOM_KEY = (
    "This agent has run the maximum number of loops. To save your wallet, this agent "
    "is shutting down. You can configure the number of loops in the advanced settings."
)
LOOP_LIMIT_DEMO = (
    "We're sorry, because this is a demo, we cannot have our agents running for too long. "
    "If you want longer runs, please provide your own API key in settings. Shutting down."
)

ADDITIONAL_TASKS_FAILED = (
    "ERROR adding additional task(s). It might have been against our model's policies "
    "to run them. Continuing."
)
TASK_MARKED_COMPLETE = "Task marked as complete."

# Shown for a rate-limited request the run recovers from
RATE_LIMITED = "Rate limit exceeded. Please slow down."

EXECUTION_FAILED = "ERROR executing task. Shutting down."


# Keyed by TaskProviderError.kind. "unknown" covers anything that is not a
# provider error (e.g. an unparseable task list).
BOOTSTRAP_FAILURE_MESSAGES: Dict[str, str] = {
    "rate_limit": (
        "ERROR using your API key. You've exceeded your current quota or rate limit, "
        "please check your plan and billing details."
    ),
    "model_access": (
        "ERROR your API key does not have access to the requested model. "
        "Pick another model in settings or request access from your provider."
    ),
    "provider": (
        "ERROR accessing the model API. Please check your API key or try again later."
    ),
    "unknown": (
        "ERROR retrieving initial tasks array. Retry, make your goal more clear, or revise "
        "your goal such that it is within our model's policies to run. Shutting Down."
    ),
}


def classify_bootstrap_error(error: BaseException) -> str:
    """Map a bootstrap failure to the message shown to the user."""
    if isinstance(error, TaskProviderError):
        return BOOTSTRAP_FAILURE_MESSAGES.get(error.kind, BOOTSTRAP_FAILURE_MESSAGES["provider"])
    return BOOTSTRAP_FAILURE_MESSAGES["unknown"]


def classify_execution_error(error: BaseException) -> str:
    if isinstance(error, TaskProviderError) and error.kind in ("rate_limit", "model_access"):
        return BOOTSTRAP_FAILURE_MESSAGES[error.kind]
    return EXECUTION_FAILED


def loop_limit_message(has_custom_api_key: bool) -> str:
    return LOOP_LIMIT_CUSTOM_KEY if has_custom_api_key else LOOP_LIMIT_DEMO


def execution_info(task: str) -> str:
    return f'Executing "{task}"'


def classify_expansion_error(error: BaseException) -> List[str]:
    """Messages for a failed additional-task request, in emission order."""
    if isinstance(error, TaskProviderError) and error.rate_limited:
        return [RATE_LIMITED, ADDITIONAL_TASKS_FAILED]
    return [ADDITIONAL_TASKS_FAILED]
