"""Chat-completion client with bounded retries and usage accounting.

Wraps the OpenAI SDK (pointed at OpenRouter's OpenAI-compatible endpoint) or
the Anthropic SDK. SDK-level retries are disabled; this client owns the retry
budget so that usage counters see every HTTP attempt.
"""

import logging
import time
from typing import Any, Callable, Literal

import anthropic
import openai
from pydantic import BaseModel, ConfigDict

from refactor_pr_bot.agents.exceptions import LLMAPIError, LLMTimeoutError
from refactor_pr_bot.models import UsageStats

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
BACKOFF_BASE_MS = 400
ANTHROPIC_MAX_TOKENS = 8192
SUPPORTED_PROVIDERS = frozenset({"openrouter", "anthropic"})

ChatRole = Literal["system", "user", "assistant"]


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str


class ChatCompletion(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str  # May be empty; callers decide whether that is an error
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost_usd: float = 0.0


def _to_number(value: Any) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    return 0


def is_retriable(error: Exception) -> bool:
    """Timeouts, connection failures, 5xx and 429 are retried; nothing else is."""
    if isinstance(error, LLMTimeoutError):
        return True
    if isinstance(error, LLMAPIError):
        return error.status is None or error.status >= 500 or error.status == 429
    return False


class ChatClient:
    """Synchronous chat-completion client for one provider.

    Args:
        provider: "openrouter" or "anthropic".
        api_key: Provider API key.
        base_url: OpenAI-compatible endpoint (openrouter only).
        timeout_ms: Per-request timeout.
        retries: Extra attempts after the first; attempts = retries + 1.
        sleep: Injected for tests; receives seconds.
        sdk_client: Pre-built SDK client, bypassing construction.
    """

    def __init__(
        self,
        provider: str,
        api_key: str,
        base_url: str | None = None,
        timeout_ms: int = 60_000,
        retries: int = 2,
        sleep: Callable[[float], None] = time.sleep,
        sdk_client: Any = None,
    ) -> None:
        if provider not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"Unsupported LLM provider: {provider!r}. "
                f"Expected one of {sorted(SUPPORTED_PROVIDERS)}"
            )
        self.provider = provider
        self.timeout_ms = timeout_ms
        self.retries = max(0, retries)
        self._sleep = sleep
        self._stats = UsageStats()
        self._client = sdk_client or self._build_sdk_client(api_key, base_url)

    def _build_sdk_client(self, api_key: str, base_url: str | None) -> Any:
        timeout_s = self.timeout_ms / 1000
        if self.provider == "anthropic":
            return anthropic.Anthropic(api_key=api_key, max_retries=0, timeout=timeout_s)
        return openai.OpenAI(
            api_key=api_key,
            base_url=base_url or DEFAULT_BASE_URL,
            max_retries=0,
            timeout=timeout_s,
        )

    @property
    def usage_stats(self) -> UsageStats:
        return self._stats.model_copy()

    def reset_usage_stats(self) -> None:
        self._stats = UsageStats()

    def create_chat_completion(
        self,
        model: str,
        messages: list[ChatMessage],
        temperature: float | None = None,
    ) -> ChatCompletion:
        """Send one chat request, retrying retriable failures with backoff.

        Raises:
            LLMTimeoutError: If the final attempt timed out.
            LLMAPIError: If the final attempt failed at the HTTP or parsing level.
        """
        max_attempts = self.retries + 1
        for attempt in range(max_attempts):
            started = time.monotonic()
            self._stats.http_requests += 1
            try:
                completion = self._send(model, messages, temperature)
            except (LLMTimeoutError, LLMAPIError) as exc:
                if not is_retriable(exc) or attempt == max_attempts - 1:
                    raise
                backoff_ms = BACKOFF_BASE_MS * 2**attempt
                self._stats.retry_count += 1
                logger.warning(
                    "Chat completion failed (attempt %d/%d, %dms), retrying in %dms: %s",
                    attempt + 1,
                    max_attempts,
                    round((time.monotonic() - started) * 1000),
                    backoff_ms,
                    exc,
                )
                self._sleep(backoff_ms / 1000)
                continue

            latency_ms = round((time.monotonic() - started) * 1000)
            self._record_success(completion, latency_ms)
            logger.info(
                "Chat completion received: model=%s prompt_tokens=%d completion_tokens=%d "
                "total_tokens=%d cost_usd=%.6f latency_ms=%d",
                completion.model,
                completion.prompt_tokens,
                completion.completion_tokens,
                completion.total_tokens,
                completion.cost_usd,
                latency_ms,
            )
            return completion

        raise LLMAPIError("Chat completion failed with unknown error")

    def _record_success(self, completion: ChatCompletion, latency_ms: int) -> None:
        stats = self._stats
        stats.successful_responses += 1
        stats.prompt_tokens += completion.prompt_tokens
        stats.completion_tokens += completion.completion_tokens
        stats.total_tokens += completion.total_tokens
        stats.total_cost_usd += completion.cost_usd
        stats.total_latency_ms += latency_ms
        stats.max_latency_ms = max(stats.max_latency_ms, latency_ms)

    def _send(
        self, model: str, messages: list[ChatMessage], temperature: float | None
    ) -> ChatCompletion:
        if self.provider == "anthropic":
            return self._send_anthropic(model, messages, temperature)
        return self._send_openai(model, messages, temperature)

    def _send_openai(
        self, model: str, messages: list[ChatMessage], temperature: float | None
    ) -> ChatCompletion:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [message.model_dump() for message in messages],
        }
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            response = self._client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as exc:
            raise LLMTimeoutError(f"Chat completion timed out after {self.timeout_ms}ms") from exc
        except openai.APIStatusError as exc:
            raise LLMAPIError(
                f"Chat completion request failed with status {exc.status_code}",
                status=exc.status_code,
                payload=exc.body,
            ) from exc
        except openai.APIConnectionError as exc:
            raise LLMAPIError(f"Chat completion connection failed: {exc}") from exc

        if not getattr(response, "choices", None):
            raise LLMAPIError("Chat completion response had no choices", payload=response)

        usage = getattr(response, "usage", None)
        cost = getattr(usage, "total_cost", None)
        if cost is None:
            cost = getattr(usage, "cost", None)
        return ChatCompletion(
            content=(response.choices[0].message.content or "").strip(),
            model=getattr(response, "model", None) or model,
            prompt_tokens=int(_to_number(getattr(usage, "prompt_tokens", None))),
            completion_tokens=int(_to_number(getattr(usage, "completion_tokens", None))),
            total_tokens=int(_to_number(getattr(usage, "total_tokens", None))),
            cost_usd=float(_to_number(cost)),
        )

    def _send_anthropic(
        self, model: str, messages: list[ChatMessage], temperature: float | None
    ) -> ChatCompletion:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": ANTHROPIC_MAX_TOKENS,
            "messages": [
                {"role": m.role, "content": m.content} for m in messages if m.role != "system"
            ],
        }
        if system:
            kwargs["system"] = system
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            response = self._client.messages.create(**kwargs)
        except anthropic.APITimeoutError as exc:
            raise LLMTimeoutError(f"Chat completion timed out after {self.timeout_ms}ms") from exc
        except anthropic.APIStatusError as exc:
            raise LLMAPIError(
                f"Chat completion request failed with status {exc.status_code}",
                status=exc.status_code,
                payload=exc.body,
            ) from exc
        except anthropic.APIConnectionError as exc:
            raise LLMAPIError(f"Chat completion connection failed: {exc}") from exc

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        usage = getattr(response, "usage", None)
        input_tokens = int(_to_number(getattr(usage, "input_tokens", None)))
        output_tokens = int(_to_number(getattr(usage, "output_tokens", None)))
        return ChatCompletion(
            content=text.strip(),
            model=getattr(response, "model", None) or model,
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        )
