"""Tests for OpenRouterClient.

Uses httpx.MockTransport so no network calls are made. Covers:
- Successful completion parsing and request shape
- Retry on 5xx and timeouts, honoring Retry-After on 429
- Non-retryable auth and client errors
- Missing API key and open circuit short-circuits
- 2xx responses without a message
"""

import json
from collections.abc import Callable

import httpx
import pytest

from app.integrations.openrouter import OpenRouterClient

BASE_URL = "https://openrouter.test/api/v1"


def _success_body(content: str = '{"clusters": []}') -> dict:
    return {
        "id": "gen-123",
        "choices": [
            {"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
        "usage": {"prompt_tokens": 120, "completion_tokens": 30},
    }


class _Recorder:
    """Replays a list of responses (or exceptions) and records requests."""

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self._responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(item, Exception):
            raise item
        return item


def _make_client(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> OpenRouterClient:
    values = {
        "api_key": "test-key",
        "model": "openai/gpt-4o-mini",
        "base_url": BASE_URL,
        "max_retries": 3,
        "retry_delay": 0.0,
        "transport": httpx.MockTransport(handler),
    }
    values.update(kwargs)
    return OpenRouterClient(**values)


class TestOpenRouterSuccess:
    """Tests for successful completions."""

    async def test_returns_message_and_usage(self) -> None:
        recorder = _Recorder(httpx.Response(200, json=_success_body('{"clusters": [1]}')))
        client = _make_client(recorder)

        result = await client.complete(user_prompt="hello", system_prompt="sys")

        assert result.success is True
        assert result.text == '{"clusters": [1]}'
        assert result.finish_reason == "stop"
        assert result.input_tokens == 120
        assert result.output_tokens == 30
        assert result.request_id == "gen-123"
        await client.close()

    async def test_request_shape(self) -> None:
        recorder = _Recorder(httpx.Response(200, json=_success_body()))
        client = _make_client(recorder)
        response_format = {"type": "json_schema", "json_schema": {"name": "x"}}

        await client.complete(
            user_prompt="payload",
            system_prompt="instructions",
            response_format=response_format,
            temperature=0.2,
        )

        request = recorder.requests[0]
        body = json.loads(request.content)
        assert request.url == f"{BASE_URL}/chat/completions"
        assert request.headers["Authorization"] == "Bearer test-key"
        assert body["model"] == "openai/gpt-4o-mini"
        assert body["temperature"] == 0.2
        assert body["response_format"] == response_format
        assert body["messages"] == [
            {"role": "system", "content": "instructions"},
            {"role": "user", "content": "payload"},
        ]
        await client.close()

    async def test_skips_choices_without_content(self) -> None:
        body = _success_body("second")
        body["choices"].insert(0, {"message": {"content": ""}, "finish_reason": "length"})
        client = _make_client(_Recorder(httpx.Response(200, json=body)))

        result = await client.complete(user_prompt="x")

        assert result.success is True
        assert result.text == "second"
        await client.close()


class TestOpenRouterRetries:
    """Tests for retryable failures."""

    async def test_retries_server_error_then_succeeds(self) -> None:
        recorder = _Recorder(
            httpx.Response(502, text="bad gateway"),
            httpx.Response(200, json=_success_body()),
        )
        client = _make_client(recorder)

        result = await client.complete(user_prompt="x")

        assert result.success is True
        assert len(recorder.requests) == 2
        await client.close()

    async def test_server_error_exhausts_retries(self) -> None:
        recorder = _Recorder(httpx.Response(503, text="unavailable"))
        client = _make_client(recorder)

        result = await client.complete(user_prompt="x")

        assert result.success is False
        assert result.retryable is True
        assert result.status_code == 503
        assert len(recorder.requests) == 3
        await client.close()

    async def test_rate_limit_reports_retry_after(self) -> None:
        recorder = _Recorder(httpx.Response(429, headers={"Retry-After": "0"}))
        client = _make_client(recorder, max_retries=2)

        result = await client.complete(user_prompt="x")

        assert result.success is False
        assert result.status_code == 429
        assert result.retryable is True
        assert result.retry_after == 0.0
        assert len(recorder.requests) == 2
        await client.close()

    async def test_rate_limit_then_success(self) -> None:
        recorder = _Recorder(
            httpx.Response(429, headers={"Retry-After": "0"}),
            httpx.Response(200, json=_success_body()),
        )
        client = _make_client(recorder)

        result = await client.complete(user_prompt="x")

        assert result.success is True
        await client.close()

    async def test_timeout_is_retryable(self) -> None:
        recorder = _Recorder(httpx.ReadTimeout("timed out"))
        client = _make_client(recorder, max_retries=2)

        result = await client.complete(user_prompt="x")

        assert result.success is False
        assert result.retryable is True
        assert "timed out" in result.error
        assert len(recorder.requests) == 2
        await client.close()

    async def test_connection_error_is_retryable(self) -> None:
        recorder = _Recorder(
            httpx.ConnectError("refused"),
            httpx.Response(200, json=_success_body()),
        )
        client = _make_client(recorder)

        result = await client.complete(user_prompt="x")

        assert result.success is True
        assert len(recorder.requests) == 2
        await client.close()


class TestOpenRouterFatalErrors:
    """Tests for failures that are not retried."""

    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_auth_failure(self, status_code: int) -> None:
        recorder = _Recorder(httpx.Response(status_code, json={"error": "nope"}))
        client = _make_client(recorder)

        result = await client.complete(user_prompt="x")

        assert result.success is False
        assert result.retryable is False
        assert result.status_code == status_code
        assert len(recorder.requests) == 1
        await client.close()

    async def test_client_error_message_extracted(self) -> None:
        recorder = _Recorder(
            httpx.Response(400, json={"error": {"message": "response_format unsupported"}})
        )
        client = _make_client(recorder)

        result = await client.complete(user_prompt="x")

        assert result.retryable is False
        assert "response_format unsupported" in result.error
        assert len(recorder.requests) == 1
        await client.close()

    async def test_missing_message_is_not_retryable(self) -> None:
        recorder = _Recorder(httpx.Response(200, json={"choices": []}))
        client = _make_client(recorder)

        result = await client.complete(user_prompt="x")

        assert result.success is False
        assert result.retryable is False
        assert "did not include a message" in result.error
        await client.close()

    async def test_non_json_success_body(self) -> None:
        client = _make_client(_Recorder(httpx.Response(200, text="<html>")))

        result = await client.complete(user_prompt="x")

        assert result.success is False
        assert result.retryable is False
        await client.close()


class TestOpenRouterShortCircuits:
    """Tests for requests that never reach the network."""

    async def test_missing_api_key(self) -> None:
        recorder = _Recorder(httpx.Response(200, json=_success_body()))
        client = _make_client(recorder, api_key="")

        result = await client.complete(user_prompt="x")

        assert client.available is False
        assert result.success is False
        assert result.retryable is False
        assert recorder.requests == []

    async def test_open_circuit(self) -> None:
        recorder = _Recorder(httpx.Response(200, json=_success_body()))
        client = _make_client(recorder)
        while not client.circuit_breaker.is_open:
            await client.circuit_breaker.record_failure()

        result = await client.complete(user_prompt="x")

        assert result.success is False
        assert result.retryable is True
        assert result.error == "Circuit breaker is open"
        assert result.retry_after is not None
        assert recorder.requests == []

    async def test_repeated_server_errors_open_circuit(self) -> None:
        recorder = _Recorder(httpx.Response(500))
        client = _make_client(recorder, max_retries=5)

        await client.complete(user_prompt="x")

        assert client.circuit_breaker.is_open is True
        await client.close()
