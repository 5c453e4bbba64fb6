"""Task provider interface and its two HTTP transports."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from agentic_goal_runner.config import Config
from agentic_goal_runner.constants import (
    AGENT_CREATE_PATH,
    AGENT_EXECUTE_PATH,
    AGENT_START_PATH,
    DEFAULT_OPENAI_API_BASE,
    DEFAULT_REQUEST_TIMEOUT_S,
)
from agentic_goal_runner.models import ModelSettings
from agentic_goal_runner.prompts import (
    CREATE_TASKS_PROMPT,
    EXECUTE_TASK_PROMPT,
    START_GOAL_PROMPT,
    extract_tasks,
)


# HTTP status -> error kind, consulted at the transport boundary
ERROR_KINDS_BY_STATUS = {
    429: "rate_limit",
    404: "model_access",
}


class TaskProviderError(Exception):
    """Error from a task provider call."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def kind(self) -> str:
        return ERROR_KINDS_BY_STATUS.get(self.status_code, "provider")

    @property
    def rate_limited(self) -> bool:
        return self.kind == "rate_limit"


def _error_message(response: httpx.Response, fallback: str) -> str:
    """Pull a provider error message out of a JSON error body if present."""
    try:
        data = response.json()
    except ValueError:
        return fallback
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return error.get("message") or fallback
    if isinstance(error, str):
        return error
    return fallback


async def _post_json(
    url: str,
    payload: dict,
    headers: Optional[dict] = None,
    timeout: float = DEFAULT_REQUEST_TIMEOUT_S,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict:
    """POST a JSON body and return the decoded JSON response.

    Raises:
        TaskProviderError: on HTTP status errors, timeouts and network errors
    """
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            return response.json()
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        message = _error_message(e.response, str(e))
        raise TaskProviderError(f"API error ({status}): {message}", status_code=status)
    except httpx.TimeoutException:
        raise TaskProviderError(f"Request timed out after {timeout}s.")
    except httpx.RequestError as e:
        raise TaskProviderError(f"Network error: {e}")
    except ValueError as e:
        raise TaskProviderError(f"Response is not valid JSON: {e}")


class TaskProvider(ABC):
    """Abstract interface for the three model-backed operations of a run."""

    @abstractmethod
    async def propose_initial_tasks(
        self,
        model_settings: ModelSettings,
        goal: str,
    ) -> List[str]:
        """
        Propose the first tasks for a goal.

        Raises:
            TaskProviderError: On API or network errors
        """
        pass

    @abstractmethod
    async def propose_additional_tasks(
        self,
        model_settings: ModelSettings,
        goal: str,
        pending_tasks: List[str],
        last_task: str,
        last_result: str,
        completed_tasks: List[str],
    ) -> List[str]:
        """
        Propose follow-on tasks after executing `last_task`.

        Raises:
            TaskProviderError: On API or network errors
        """
        pass

    @abstractmethod
    async def execute_task(
        self,
        model_settings: ModelSettings,
        goal: str,
        task: str,
    ) -> str:
        """
        Execute one task and return its result text.

        Raises:
            TaskProviderError: On API or network errors
        """
        pass

    async def check_connection(self, model_settings: ModelSettings) -> None:
        """Verify the provider is reachable with these settings. No-op by default."""
        return None


class DirectTaskProvider(TaskProvider):
    """Talks straight to an OpenAI-compatible chat completions endpoint.

    Used when the caller supplies their own API key.
    """

    def __init__(
        self,
        api_base: str = DEFAULT_OPENAI_API_BASE,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def completions_url(self) -> str:
        return f"{self.api_base}/chat/completions"

    def _headers(self, model_settings: ModelSettings) -> Dict[str, str]:
        if not model_settings.custom_api_key:
            raise TaskProviderError("A custom API key is required for direct requests.")
        return {
            "Authorization": f"Bearer {model_settings.custom_api_key}",
            "Content-Type": "application/json",
        }

    async def _complete(
        self,
        model_settings: ModelSettings,
        prompt: str,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        payload: Dict[str, Any] = {
            "model": model_settings.custom_model_name,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": (
                model_settings.custom_temperature if temperature is None else temperature
            ),
            "max_tokens": model_settings.max_tokens if max_tokens is None else max_tokens,
        }

        data = await _post_json(
            self.completions_url,
            payload,
            headers=self._headers(model_settings),
            timeout=self.timeout,
            transport=self._transport,
        )

        choices = data.get("choices", [])
        if not choices:
            raise TaskProviderError("No choices in API response")
        content = choices[0].get("message", {}).get("content") or ""
        return content.strip()

    async def check_connection(self, model_settings: ModelSettings) -> None:
        # Tiny request so a bad key or model fails before any task is queued
        await self._complete(model_settings, "Say this is a test", max_tokens=7, temperature=0)

    async def propose_initial_tasks(self, model_settings, goal):
        content = await self._complete(model_settings, START_GOAL_PROMPT.format(goal=goal))
        return extract_tasks(content)

    async def propose_additional_tasks(
        self,
        model_settings,
        goal,
        pending_tasks,
        last_task,
        last_result,
        completed_tasks,
    ):
        prompt = CREATE_TASKS_PROMPT.format(
            goal=goal,
            tasks=pending_tasks,
            completed_tasks=completed_tasks,
            last_task=last_task,
            result=last_result,
        )
        content = await self._complete(model_settings, prompt)
        return extract_tasks(content)

    async def execute_task(self, model_settings, goal, task):
        return await self._complete(
            model_settings, EXECUTE_TASK_PROMPT.format(goal=goal, task=task)
        )


class MediatedTaskProvider(TaskProvider):
    """Goes through the intermediary agent service.

    Used when the caller has no API key of their own; the service holds the
    provider credentials.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _post(self, path: str, payload: dict) -> dict:
        return await _post_json(
            f"{self.base_url}{path}",
            payload,
            timeout=self.timeout,
            transport=self._transport,
        )

    @staticmethod
    def _task_list(data: dict) -> List[str]:
        tasks = data.get("newTasks")
        if not isinstance(tasks, list) or not all(isinstance(t, str) for t in tasks):
            raise TaskProviderError("Unexpected API response format: missing newTasks")
        return tasks

    async def propose_initial_tasks(self, model_settings, goal):
        data = await self._post(AGENT_START_PATH, {
            "modelSettings": model_settings.to_dict(),
            "goal": goal,
        })
        return self._task_list(data)

    async def propose_additional_tasks(
        self,
        model_settings,
        goal,
        pending_tasks,
        last_task,
        last_result,
        completed_tasks,
    ):
        data = await self._post(AGENT_CREATE_PATH, {
            "modelSettings": model_settings.to_dict(),
            "goal": goal,
            "tasks": list(pending_tasks),
            "lastTask": last_task,
            "result": last_result,
            "completedTasks": list(completed_tasks),
        })
        return self._task_list(data)

    async def execute_task(self, model_settings, goal, task):
        data = await self._post(AGENT_EXECUTE_PATH, {
            "modelSettings": model_settings.to_dict(),
            "goal": goal,
            "task": task,
        })
        response = data.get("response")
        if not isinstance(response, str):
            raise TaskProviderError("Unexpected API response format: missing response")
        return response


def select_task_provider(
    model_settings: ModelSettings,
    config: Config,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> TaskProvider:
    """Pick the transport from credential presence alone."""
    if model_settings.has_custom_api_key:
        return DirectTaskProvider(
            api_base=config.openai_api_base,
            timeout=config.request_timeout,
            transport=transport,
        )

    if not config.agent_api_url:
        raise TaskProviderError(
            "GOAL_RUNNER_API_URL is required when no custom API key is given."
        )
    return MediatedTaskProvider(
        base_url=config.agent_api_url,
        timeout=config.request_timeout,
        transport=transport,
    )
