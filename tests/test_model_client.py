"""Tests for the task provider transports (httpx.MockTransport, no network)."""

import asyncio
import json

import httpx
import pytest

from agentic_goal_runner.config import Config
from agentic_goal_runner.model_client import (
    DirectTaskProvider,
    MediatedTaskProvider,
    TaskProviderError,
    select_task_provider,
)
from agentic_goal_runner.models import ModelSettings


KEYED = ModelSettings(custom_api_key="sk-test", custom_model_name="gpt-4", custom_temperature=0.5)


def completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


class CapturingTransport:
    """Builds a MockTransport and keeps every request it saw."""

    def __init__(self, status_code=200, body=None, raise_exc=None):
        self.requests = []
        self.status_code = status_code
        self.body = body if body is not None else {}
        self.raise_exc = raise_exc

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_exc is not None:
            raise self.raise_exc
        return httpx.Response(self.status_code, json=self.body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def payload(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


# =============================================================================
# DIRECT TRANSPORT
# =============================================================================

class TestDirectTaskProvider:
    """OpenAI-compatible chat completions with the caller's key."""

    def test_initial_tasks_from_fenced_array(self):
        capture = CapturingTransport(body=completion(
            'Sure!\n```json\n["Find flights", "Book hotel"]\n```'
        ))
        provider = DirectTaskProvider(api_base="https://llm.test/v1", transport=capture.transport)

        tasks = asyncio.run(provider.propose_initial_tasks(KEYED, "Plan a trip"))

        assert tasks == ["Find flights", "Book hotel"]
        request = capture.requests[0]
        assert str(request.url) == "https://llm.test/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        payload = capture.payload()
        assert payload["model"] == "gpt-4"
        assert payload["temperature"] == 0.5
        assert "Plan a trip" in payload["messages"][0]["content"]

    def test_additional_tasks_drop_placeholders(self):
        capture = CapturingTransport(body=completion('["No additional tasks", "Pack bags"]'))
        provider = DirectTaskProvider(transport=capture.transport)

        tasks = asyncio.run(provider.propose_additional_tasks(
            KEYED, "Plan a trip", ["Book hotel"], "Find flights", "Flights found", ["Find flights"]
        ))

        assert tasks == ["Pack bags"]
        prompt = capture.payload()["messages"][0]["content"]
        assert "Find flights" in prompt
        assert "Flights found" in prompt

    def test_execute_task_returns_content(self):
        capture = CapturingTransport(body=completion("  Cheapest flight is on Tuesday.  "))
        provider = DirectTaskProvider(transport=capture.transport)

        result = asyncio.run(provider.execute_task(KEYED, "Plan a trip", "Find flights"))

        assert result == "Cheapest flight is on Tuesday."

    def test_task_requests_carry_max_tokens(self):
        capture = CapturingTransport(body=completion("done"))
        provider = DirectTaskProvider(transport=capture.transport)

        asyncio.run(provider.execute_task(KEYED, "Plan a trip", "Find flights"))
        asyncio.run(provider.execute_task(
            ModelSettings(custom_api_key="sk-test", max_tokens=1200), "Plan a trip", "Book hotel"
        ))

        assert capture.payload(0)["max_tokens"] == 400
        assert capture.payload(1)["max_tokens"] == 1200

    def test_check_connection_is_tiny_request(self):
        capture = CapturingTransport(body=completion("This is a test"))
        provider = DirectTaskProvider(transport=capture.transport)

        asyncio.run(provider.check_connection(KEYED))

        payload = capture.payload()
        assert payload["max_tokens"] == 7
        assert payload["temperature"] == 0

    def test_rate_limit_status(self):
        capture = CapturingTransport(
            status_code=429, body={"error": {"message": "You exceeded your current quota"}}
        )
        provider = DirectTaskProvider(transport=capture.transport)

        with pytest.raises(TaskProviderError) as exc_info:
            asyncio.run(provider.propose_initial_tasks(KEYED, "goal"))

        assert exc_info.value.status_code == 429
        assert exc_info.value.kind == "rate_limit"
        assert exc_info.value.rate_limited
        assert "quota" in str(exc_info.value)

    def test_model_access_status(self):
        capture = CapturingTransport(status_code=404, body={"error": {"message": "model not found"}})
        provider = DirectTaskProvider(transport=capture.transport)

        with pytest.raises(TaskProviderError) as exc_info:
            asyncio.run(provider.execute_task(KEYED, "goal", "task"))

        assert exc_info.value.kind == "model_access"

    def test_server_error_is_generic_provider_error(self):
        capture = CapturingTransport(status_code=500, body={"error": "oops"})
        provider = DirectTaskProvider(transport=capture.transport)

        with pytest.raises(TaskProviderError) as exc_info:
            asyncio.run(provider.execute_task(KEYED, "goal", "task"))

        assert exc_info.value.kind == "provider"
        assert "oops" in str(exc_info.value)

    def test_timeout(self):
        capture = CapturingTransport(raise_exc=httpx.ReadTimeout("slow"))
        provider = DirectTaskProvider(timeout=1.0, transport=capture.transport)

        with pytest.raises(TaskProviderError) as exc_info:
            asyncio.run(provider.execute_task(KEYED, "goal", "task"))

        assert exc_info.value.status_code is None
        assert "timed out" in str(exc_info.value)

    def test_network_error(self):
        capture = CapturingTransport(raise_exc=httpx.ConnectError("refused"))
        provider = DirectTaskProvider(transport=capture.transport)

        with pytest.raises(TaskProviderError) as exc_info:
            asyncio.run(provider.execute_task(KEYED, "goal", "task"))

        assert "Network error" in str(exc_info.value)

    def test_no_choices(self):
        capture = CapturingTransport(body={"choices": []})
        provider = DirectTaskProvider(transport=capture.transport)

        with pytest.raises(TaskProviderError):
            asyncio.run(provider.execute_task(KEYED, "goal", "task"))

    def test_requires_custom_key(self):
        capture = CapturingTransport(body=completion("[]"))
        provider = DirectTaskProvider(transport=capture.transport)

        with pytest.raises(TaskProviderError):
            asyncio.run(provider.execute_task(ModelSettings(), "goal", "task"))
        assert capture.requests == []


# =============================================================================
# MEDIATED TRANSPORT
# =============================================================================

class TestMediatedTaskProvider:
    """Intermediary agent service endpoints."""

    def test_start_payload(self):
        capture = CapturingTransport(body={"newTasks": ["Find flights"]})
        provider = MediatedTaskProvider("https://agent.test/", transport=capture.transport)

        tasks = asyncio.run(provider.propose_initial_tasks(ModelSettings(), "Plan a trip"))

        assert tasks == ["Find flights"]
        assert str(capture.requests[0].url) == "https://agent.test/api/agent/start"
        payload = capture.payload()
        assert payload["goal"] == "Plan a trip"
        assert payload["modelSettings"]["customModelName"] == "gpt-3.5-turbo"
        assert payload["modelSettings"]["maxTokens"] == 400
        assert "customApiKey" not in payload["modelSettings"]

    def test_create_payload(self):
        capture = CapturingTransport(body={"newTasks": ["Pack bags"]})
        provider = MediatedTaskProvider("https://agent.test", transport=capture.transport)

        tasks = asyncio.run(provider.propose_additional_tasks(
            ModelSettings(), "Plan a trip", ["Book hotel"], "Find flights", "found", ["Find flights"]
        ))

        assert tasks == ["Pack bags"]
        assert capture.requests[0].url.path == "/api/agent/create"
        payload = capture.payload()
        assert payload["tasks"] == ["Book hotel"]
        assert payload["lastTask"] == "Find flights"
        assert payload["result"] == "found"
        assert payload["completedTasks"] == ["Find flights"]

    def test_execute_response(self):
        capture = CapturingTransport(body={"response": "done"})
        provider = MediatedTaskProvider("https://agent.test", transport=capture.transport)

        result = asyncio.run(provider.execute_task(ModelSettings(), "goal", "task"))

        assert result == "done"
        assert capture.requests[0].url.path == "/api/agent/execute"
        assert capture.payload()["task"] == "task"

    def test_missing_new_tasks(self):
        capture = CapturingTransport(body={"tasks": []})
        provider = MediatedTaskProvider("https://agent.test", transport=capture.transport)

        with pytest.raises(TaskProviderError):
            asyncio.run(provider.propose_initial_tasks(ModelSettings(), "goal"))

    def test_rate_limit_status(self):
        capture = CapturingTransport(status_code=429, body={"error": "Too many requests"})
        provider = MediatedTaskProvider("https://agent.test", transport=capture.transport)

        with pytest.raises(TaskProviderError) as exc_info:
            asyncio.run(provider.propose_initial_tasks(ModelSettings(), "goal"))

        assert exc_info.value.rate_limited

    def test_check_connection_is_noop(self):
        capture = CapturingTransport()
        provider = MediatedTaskProvider("https://agent.test", transport=capture.transport)

        asyncio.run(provider.check_connection(ModelSettings()))

        assert capture.requests == []


class TestSelectTaskProvider:
    """Transport chosen by credential presence alone."""

    def test_custom_key_goes_direct(self):
        config = Config(agent_api_url="https://agent.test", openai_api_base="https://llm.test/v1")
        provider = select_task_provider(KEYED, config)
        assert isinstance(provider, DirectTaskProvider)
        assert provider.api_base == "https://llm.test/v1"

    def test_no_key_goes_mediated(self):
        config = Config(agent_api_url="https://agent.test")
        provider = select_task_provider(ModelSettings(), config)
        assert isinstance(provider, MediatedTaskProvider)
        assert provider.base_url == "https://agent.test"

    def test_no_key_and_no_service_url(self):
        with pytest.raises(TaskProviderError):
            select_task_provider(ModelSettings(), Config())
