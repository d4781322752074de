import asyncio
import logging
import random
import time
from email.utils import parsedate_to_datetime
from typing import Any, cast

import openai
from openai import AsyncOpenAI

from chat_agent.infrastructure.data_models import (
    CompletionOutcome,
    FinalAnswer,
    Message,
    ServiceError,
    ToolCall,
    ToolRequested,
)

logger = logging.getLogger(__name__)

# Default configuration constants
DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_ATTEMPTS = 1
DEFAULT_RETRY_DELAY = 1.0
MAX_RETRY_SLEEP = 30.0
SEARCH_OPTIONS = {"search_strategy": "agent"}


def _seconds_until(value: str, *, relative: bool) -> float | None:
    """
    Read a header value that is either a number or an HTTP date.

    A number is taken as seconds from now when `relative`, else as an epoch time.
    """
    value = value.strip()
    try:
        number = float(value)
    except ValueError:
        try:
            return parsedate_to_datetime(value).timestamp() - time.time()
        except (TypeError, ValueError):
            return None
    return number if relative else number - time.time()


def _rate_limit_wait(err: Exception) -> float | None:
    """Seconds a 429 response asked us to wait, or None when it gave no hint."""
    headers = getattr(getattr(err, "response", None), "headers", None)
    if not headers:
        return None
    lowered = {str(k).lower(): str(v) for k, v in headers.items()}

    if "retry-after" in lowered:
        wait = _seconds_until(lowered["retry-after"], relative=True)
        if wait is not None:
            return max(0.0, wait)

    resets = [
        _seconds_until(lowered[name], relative=False)
        for name in ("x-ratelimit-reset-requests", "x-ratelimit-reset-tokens")
        if name in lowered
    ]
    known = [r for r in resets if r is not None]
    return max(0.0, *known) if known else None


class OpenAIChat:
    """
    Async client for an OpenAI-compatible chat completions endpoint.

    One `complete` call is one request/response exchange with the completion
    service. Service failures are returned as `ServiceError` outcomes rather
    than raised, so callers can decide how to degrade. Timeouts, connection
    errors and 5xx responses are never re-sent; only a rate-limited (429) call
    is, and only while `max_attempts` allows.
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        client: AsyncOpenAI | None = None,
    ) -> None:
        """
        Initialize the chat client.

        Args:
            api_key: Completion service API key.
            model: Model name (e.g. 'qwen3-max').
            base_url: OpenAI-compatible base URL. None uses the OpenAI default.
            timeout: Per-request deadline in seconds.
            max_attempts: Attempts for a rate-limited call. 1 disables re-sending.
            client: Pre-configured client (for tests/advanced use).

        Raises:
            ValueError: If no API key is provided.
        """
        if client is None:
            if not api_key:
                raise ValueError("Completion API key not found in environment")
            # The SDK's own retries would re-send timeouts and 5xx responses
            client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

        self.client: AsyncOpenAI = client
        self.model = model
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)

    @property
    def budget_seconds(self) -> float:
        """Longest one `complete` call can take, rate-limit waits included."""
        return self.timeout * self.max_attempts + MAX_RETRY_SLEEP * (self.max_attempts - 1)

    def _build_request(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None,
        search: bool,
    ) -> dict[str, Any]:
        extra_body: dict[str, Any] = {"enable_thinking": False}
        if search:
            extra_body["enable_search"] = True
            extra_body["search_options"] = SEARCH_OPTIONS

        request: dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "extra_body": extra_body,
        }
        if tools:
            request["tools"] = tools
        return request

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
        *,
        search: bool = False,
    ) -> CompletionOutcome:
        """
        Send the message list (and optional tool catalogue) to the model.

        Args:
            messages: Conversation so far, system prompt first.
            tools: Tool catalogue in chat-completions format, or None to disable tools.
            search: Enable the provider's search augmentation for this call.

        Returns:
            FinalAnswer, ToolRequested or ServiceError.
        """
        request = self._build_request(messages, tools, search)
        attempt = 1

        while True:
            try:
                response = await asyncio.wait_for(
                    self.client.chat.completions.create(**request),
                    timeout=self.timeout,
                )
            except openai.RateLimitError as e:
                if attempt >= self.max_attempts:
                    logger.error(f"Completion rate limited after {attempt} attempt(s)")
                    return ServiceError(f"AI service error: {e.status_code}", e.status_code)
                hinted = _rate_limit_wait(e)
                backoff = DEFAULT_RETRY_DELAY * (2 ** (attempt - 1)) + random.uniform(0, 0.4)
                sleep = min(hinted if hinted is not None else backoff, MAX_RETRY_SLEEP)
                logger.warning(f"Completion rate limited, retrying in {sleep:.1f}s")
                await asyncio.sleep(sleep)
                attempt += 1
                continue
            except TimeoutError:
                logger.error(f"Completion timed out after {self.timeout:g}s")
                return ServiceError(f"AI service timed out after {self.timeout:g}s")
            except openai.APIStatusError as e:
                logger.error(f"Completion service error {e.status_code}: {e.message}")
                return ServiceError(f"AI service error: {e.status_code}", e.status_code)
            except openai.OpenAIError as e:
                logger.error(f"Completion request failed: {type(e).__name__}: {e}")
                return ServiceError(f"AI service error: {e}")

            return self._handle_response(response)

    def _handle_response(self, resp: Any) -> CompletionOutcome:
        """
        Convert a chat-completions response into a completion outcome.

        Args:
            resp: The raw response returned by the SDK.

        Returns:
            ToolRequested when the model asked for tools, FinalAnswer otherwise,
            ServiceError when the response carries no choices.
        """
        # Extract usage information
        u = getattr(resp, "usage", None)
        usage = {
            "prompt_tokens": getattr(u, "prompt_tokens", 0),
            "completion_tokens": getattr(u, "completion_tokens", 0),
            "total_tokens": getattr(u, "total_tokens", 0),
        }
        logger.debug(f"Completion by {getattr(resp, 'model', 'Unknown')}, usage: {usage}")

        choices = getattr(resp, "choices", None) or []
        if not choices:
            return ServiceError("No response from AI")

        message = choices[0].message
        content = cast(str | None, getattr(message, "content", None)) or ""
        raw_calls = getattr(message, "tool_calls", None) or []

        if raw_calls:
            calls = tuple(
                ToolCall.from_raw(
                    id=call.id,
                    name=call.function.name,
                    raw_arguments=call.function.arguments,
                )
                for call in raw_calls
            )
            return ToolRequested(calls=calls, text=content)

        return FinalAnswer(text=content)
