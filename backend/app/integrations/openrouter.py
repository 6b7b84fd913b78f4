"""OpenRouter chat-completions client used for query clustering.

Features:
- Async HTTP client using httpx (direct API calls)
- Circuit breaker for fault tolerance
- Retry logic with exponential backoff
- Structured-output requests (response_format json_schema)
- Handles timeouts, rate limits (429), auth failures (401/403)
- Failures are returned as CompletionResult with a retryable flag
- Token usage logging for quota tracking

ERROR LOGGING REQUIREMENTS:
- Log all outbound API calls with model, timing
- Log request/response bodies at DEBUG level (truncate large responses)
- Log and handle: timeouts, rate limits (429), auth failures (401/403)
- Include retry attempt number in logs
- Log token usage if available
- Never log API keys
- Log circuit breaker state changes
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import httpx

from app.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from app.core.config import get_settings
from app.core.logging import completion_logger, get_logger

logger = get_logger(__name__)

CHAT_COMPLETIONS_PATH = "/chat/completions"
MAX_HONORED_RETRY_AFTER_SECONDS = 60.0


@dataclass
class CompletionResult:
    """Result of a chat completion request.

    ``retryable`` tells callers whether the same request may succeed later
    (timeouts, rate limits, upstream outages) or will keep failing (bad
    credentials, rejected request, unusable response body).
    """

    success: bool
    text: str | None = None
    finish_reason: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    error: str | None = None
    status_code: int | None = None
    duration_ms: float = 0.0
    request_id: str | None = None
    retryable: bool = False
    retry_after: float | None = None


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def _extract_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or "Client error"
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return str(body)[:200]


class OpenRouterClient:
    """Async client for the OpenRouter chat completions API.

    Provides LLM completions with:
    - Circuit breaker for fault tolerance
    - Retry logic with exponential backoff
    - Comprehensive logging
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize OpenRouter client.

        Args:
            api_key: OpenRouter API key. Defaults to settings.
            model: Model to use. Defaults to settings.
            base_url: API base URL. Defaults to settings.
            timeout: Per-attempt timeout in seconds. Defaults to settings.
            max_retries: Maximum attempts. Defaults to settings.
            retry_delay: Base delay between retries. Defaults to settings.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        settings = get_settings()

        self._api_key = api_key if api_key is not None else settings.openrouter_api_key
        self._model = model or settings.openrouter_model
        self._base_url = (base_url or settings.openrouter_base_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.openrouter_timeout
        self._max_retries = max(
            max_retries if max_retries is not None else settings.openrouter_max_retries,
            1,
        )
        self._retry_delay = (
            retry_delay if retry_delay is not None else settings.openrouter_retry_delay
        )
        self._referer = settings.openrouter_referer
        self._app_title = settings.openrouter_app_title
        self._transport = transport

        self._circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.openrouter_circuit_failure_threshold,
                recovery_timeout=settings.openrouter_circuit_recovery_timeout,
            ),
            name="openrouter",
            on_state_change=self._on_circuit_state_change,
        )

        self._client: httpx.AsyncClient | None = None
        self._available = bool(self._api_key)

    @property
    def available(self) -> bool:
        """Check if OpenRouter is configured."""
        return self._available

    @property
    def model(self) -> str:
        return self._model

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    def _on_circuit_state_change(
        self,
        name: str,
        previous: CircuitState,
        new_state: CircuitState,
        failure_count: int,
    ) -> None:
        completion_logger.circuit_state_change(
            name, previous.value, new_state.value, failure_count
        )
        if new_state == CircuitState.OPEN:
            completion_logger.circuit_open(
                name,
                failure_count,
                get_settings().openrouter_circuit_recovery_timeout,
            )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers: dict[str, str] = {
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            if self._referer:
                headers["HTTP-Referer"] = self._referer
            if self._app_title:
                headers["X-Title"] = self._app_title

            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("OpenRouter client closed")

    def _backoff(self, attempt: int) -> float:
        return self._retry_delay * (2**attempt)

    async def _sleep_before_retry(
        self, attempt: int, delay: float, reason: str, status_code: int | None = None
    ) -> None:
        logger.warning(
            f"OpenRouter request attempt {attempt + 1} failed ({reason}), "
            f"retrying in {delay}s",
            extra={
                "attempt": attempt + 1,
                "max_retries": self._max_retries,
                "delay_seconds": delay,
                "status_code": status_code,
            },
        )
        await asyncio.sleep(delay)

    async def complete(
        self,
        user_prompt: str,
        system_prompt: str | None = None,
        response_format: dict[str, Any] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> CompletionResult:
        """Send a chat completion request.

        Args:
            user_prompt: The user message
            system_prompt: Optional system message
            response_format: Optional structured-output contract
            temperature: Sampling temperature. Defaults to settings.
            max_tokens: Optional response token cap. Defaults to settings.

        Returns:
            CompletionResult with response text and metadata
        """
        if not self._available:
            return CompletionResult(
                success=False,
                error="OpenRouter not configured (missing API key)",
                retryable=False,
            )

        if not await self._circuit_breaker.can_execute():
            return CompletionResult(
                success=False,
                error="Circuit breaker is open",
                retryable=True,
                retry_after=round(self._circuit_breaker.retry_in(), 1),
            )

        settings = get_settings()
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        request_body: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": (
                temperature if temperature is not None else settings.openrouter_temperature
            ),
        }
        token_cap = max_tokens or settings.openrouter_max_tokens
        if token_cap:
            request_body["max_tokens"] = token_cap
        if response_format:
            request_body["response_format"] = response_format

        start_time = time.monotonic()
        client = await self._get_client()
        last_result: CompletionResult | None = None

        for attempt in range(self._max_retries):
            attempt_start = time.monotonic()
            is_last_attempt = attempt >= self._max_retries - 1

            try:
                completion_logger.api_call_start(
                    self._model, len(user_prompt), retry_attempt=attempt
                )
                if system_prompt:
                    completion_logger.request_body(self._model, system_prompt, user_prompt)

                response = await client.post(CHAT_COMPLETIONS_PATH, json=request_body)
                duration_ms = (time.monotonic() - attempt_start) * 1000
                request_id = response.headers.get("x-request-id")
                status_code = response.status_code

                if status_code == 429:
                    retry_after = _parse_retry_after(response.headers.get("retry-after"))
                    completion_logger.rate_limit(self._model, retry_after=retry_after)
                    await self._circuit_breaker.record_failure()
                    last_result = CompletionResult(
                        success=False,
                        error="Rate limit exceeded",
                        status_code=429,
                        request_id=request_id,
                        duration_ms=duration_ms,
                        retryable=True,
                        retry_after=retry_after,
                    )
                    if not is_last_attempt:
                        delay = (
                            retry_after
                            if retry_after is not None
                            and retry_after <= MAX_HONORED_RETRY_AFTER_SECONDS
                            else self._backoff(attempt)
                        )
                        await self._sleep_before_retry(attempt, delay, "rate limited", 429)
                        continue
                    return last_result

                if status_code in (401, 403):
                    completion_logger.auth_failure(status_code)
                    completion_logger.api_call_error(
                        self._model,
                        duration_ms,
                        status_code,
                        "Authentication failed",
                        "AuthError",
                        retry_attempt=attempt,
                        request_id=request_id,
                    )
                    await self._circuit_breaker.record_failure()
                    return CompletionResult(
                        success=False,
                        error=f"Authentication failed ({status_code})",
                        status_code=status_code,
                        request_id=request_id,
                        duration_ms=duration_ms,
                        retryable=False,
                    )

                if status_code == 408 or status_code >= 500:
                    error_msg = f"Upstream error ({status_code})"
                    completion_logger.api_call_error(
                        self._model,
                        duration_ms,
                        status_code,
                        error_msg,
                        "ServerError",
                        retry_attempt=attempt,
                        request_id=request_id,
                    )
                    await self._circuit_breaker.record_failure()
                    last_result = CompletionResult(
                        success=False,
                        error=error_msg,
                        status_code=status_code,
                        request_id=request_id,
                        duration_ms=duration_ms,
                        retryable=True,
                    )
                    if not is_last_attempt:
                        await self._sleep_before_retry(
                            attempt, self._backoff(attempt), "server error", status_code
                        )
                        continue
                    return last_result

                if status_code >= 400:
                    # Client error - don't retry
                    error_msg = _extract_error_message(response)
                    completion_logger.api_call_error(
                        self._model,
                        duration_ms,
                        status_code,
                        error_msg,
                        "ClientError",
                        retry_attempt=attempt,
                        request_id=request_id,
                    )
                    return CompletionResult(
                        success=False,
                        error=f"Client error ({status_code}): {error_msg}",
                        status_code=status_code,
                        request_id=request_id,
                        duration_ms=duration_ms,
                        retryable=False,
                    )

                await self._circuit_breaker.record_success()
                return self._parse_success(response, request_id, start_time, duration_ms)

            except httpx.TimeoutException:
                duration_ms = (time.monotonic() - attempt_start) * 1000
                completion_logger.timeout(self._model, self._timeout)
                completion_logger.api_call_error(
                    self._model,
                    duration_ms,
                    None,
                    "Request timed out",
                    "TimeoutError",
                    retry_attempt=attempt,
                )
                await self._circuit_breaker.record_failure()
                last_result = CompletionResult(
                    success=False,
                    error=f"Request timed out after {self._timeout}s",
                    duration_ms=duration_ms,
                    retryable=True,
                )
                if not is_last_attempt:
                    await self._sleep_before_retry(attempt, self._backoff(attempt), "timeout")
                    continue

            except httpx.RequestError as e:
                duration_ms = (time.monotonic() - attempt_start) * 1000
                completion_logger.api_call_error(
                    self._model,
                    duration_ms,
                    None,
                    str(e),
                    type(e).__name__,
                    retry_attempt=attempt,
                )
                await self._circuit_breaker.record_failure()
                last_result = CompletionResult(
                    success=False,
                    error=f"Request failed: {e}",
                    duration_ms=duration_ms,
                    retryable=True,
                )
                if not is_last_attempt:
                    await self._sleep_before_retry(
                        attempt, self._backoff(attempt), type(e).__name__
                    )
                    continue

        total_duration_ms = (time.monotonic() - start_time) * 1000
        if last_result is not None:
            last_result.duration_ms = total_duration_ms
            return last_result
        return CompletionResult(
            success=False,
            error="Request failed after all retries",
            duration_ms=total_duration_ms,
            retryable=True,
        )

    def _parse_success(
        self,
        response: httpx.Response,
        request_id: str | None,
        start_time: float,
        duration_ms: float,
    ) -> CompletionResult:
        """Extract the first non-empty message from a 2xx response."""
        try:
            data = response.json()
        except ValueError:
            data = None

        choices = data.get("choices") if isinstance(data, dict) else None
        message_choice = None
        if isinstance(choices, list):
            for choice in choices:
                message = choice.get("message") if isinstance(choice, dict) else None
                if isinstance(message, dict) and message.get("content"):
                    message_choice = choice
                    break

        if message_choice is None:
            error_msg = "OpenRouter response did not include a message"
            completion_logger.api_call_error(
                self._model,
                duration_ms,
                response.status_code,
                error_msg,
                "MalformedResponse",
                request_id=request_id,
            )
            return CompletionResult(
                success=False,
                error=error_msg,
                status_code=response.status_code,
                request_id=request_id,
                duration_ms=duration_ms,
                retryable=False,
            )

        text = str(message_choice["message"]["content"])
        finish_reason = message_choice.get("finish_reason")
        usage = data.get("usage") or {}
        input_tokens = usage.get("prompt_tokens")
        output_tokens = usage.get("completion_tokens")
        request_id = request_id or data.get("id")

        completion_logger.api_call_success(
            self._model,
            duration_ms,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            request_id=request_id,
        )
        completion_logger.response_body(
            self._model, text, duration_ms, finish_reason=finish_reason
        )
        if input_tokens and output_tokens:
            completion_logger.token_usage(self._model, input_tokens, output_tokens)

        return CompletionResult(
            success=True,
            text=text,
            finish_reason=finish_reason,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            status_code=response.status_code,
            request_id=request_id,
            duration_ms=(time.monotonic() - start_time) * 1000,
        )


# Global OpenRouter client instance
openrouter_client: OpenRouterClient | None = None


async def init_openrouter() -> OpenRouterClient:
    """Initialize the global OpenRouter client."""
    global openrouter_client
    if openrouter_client is None:
        openrouter_client = OpenRouterClient()
        if openrouter_client.available:
            logger.info(
                "OpenRouter client initialized",
                extra={"model": openrouter_client.model},
            )
        else:
            logger.info("OpenRouter not configured (missing API key)")
    return openrouter_client


async def close_openrouter() -> None:
    """Close the global OpenRouter client."""
    global openrouter_client
    if openrouter_client:
        await openrouter_client.close()
        openrouter_client = None


async def get_openrouter() -> OpenRouterClient:
    """Dependency for getting the OpenRouter client.

    Usage:
        @router.post("/generate")
        async def generate(openrouter: OpenRouterClient = Depends(get_openrouter)):
            ...
    """
    if openrouter_client is None:
        return await init_openrouter()
    return openrouter_client
