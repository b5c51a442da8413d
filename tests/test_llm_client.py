"""Tests for the chat-completion client: retries, error mapping and usage stats."""
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from refactor_pr_bot.agents.exceptions import LLMAPIError, LLMTimeoutError
from refactor_pr_bot.agents.llm_client import ChatClient, ChatMessage, is_retriable

REQUEST = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
MESSAGES = [
    ChatMessage(role="system", content="be brief"),
    ChatMessage(role="user", content="hello"),
]


# ---------------------------------------------------------------------------
# Helpers / shared fixtures
# ---------------------------------------------------------------------------

def make_openai_response(content: str = " NO_CHANGES_NEEDED ", cost: float = 0.002):
    """Helper to create an OpenAI-shaped chat completion response."""
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        model="minimax/minimax-m2.5",
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=5, total_tokens=15, cost=cost),
    )


def status_error(status: int) -> openai.APIStatusError:
    response = httpx.Response(status, request=REQUEST)
    return openai.APIStatusError(f"status {status}", response=response, body={"error": "x"})


def make_client(side_effect, retries: int = 2, provider: str = "openrouter"):
    sdk = MagicMock()
    sdk.chat.completions.create.side_effect = side_effect
    sdk.messages.create.side_effect = side_effect
    sleep = MagicMock()
    client = ChatClient(
        provider=provider,
        api_key="sk-test",
        retries=retries,
        sleep=sleep,
        sdk_client=sdk,
    )
    return client, sdk, sleep


# ---------------------------------------------------------------------------
# OpenAI-compatible provider
# ---------------------------------------------------------------------------

class TestOpenAIProvider:

    def test_success_records_usage(self):
        client, sdk, sleep = make_client([make_openai_response()])
        completion = client.create_chat_completion("minimax/minimax-m2.5", MESSAGES, 0.1)

        assert completion.content == "NO_CHANGES_NEEDED"
        assert completion.total_tokens == 15
        stats = client.usage_stats
        assert stats.http_requests == 1
        assert stats.successful_responses == 1
        assert stats.retry_count == 0
        assert stats.prompt_tokens == 10
        assert stats.completion_tokens == 5
        assert stats.total_cost_usd == pytest.approx(0.002)
        kwargs = sdk.chat.completions.create.call_args.kwargs
        assert kwargs["temperature"] == 0.1
        assert kwargs["messages"][0] == {"role": "system", "content": "be brief"}
        sleep.assert_not_called()

    def test_server_error_is_retried_with_backoff(self):
        client, _, sleep = make_client([status_error(503), make_openai_response()])
        client.create_chat_completion("m", MESSAGES)

        sleep.assert_called_once_with(0.4)
        stats = client.usage_stats
        assert stats.http_requests == 2
        assert stats.retry_count == 1
        assert stats.successful_responses == 1

    def test_client_error_is_not_retried(self):
        client, _, sleep = make_client([status_error(400)])
        with pytest.raises(LLMAPIError) as excinfo:
            client.create_chat_completion("m", MESSAGES)

        assert excinfo.value.status == 400
        assert excinfo.value.payload == {"error": "x"}
        sleep.assert_not_called()
        assert client.usage_stats.http_requests == 1

    def test_timeouts_exhaust_budget(self):
        timeout = openai.APITimeoutError(request=REQUEST)
        client, _, sleep = make_client([timeout, timeout, timeout], retries=2)
        with pytest.raises(LLMTimeoutError):
            client.create_chat_completion("m", MESSAGES)

        assert [call.args[0] for call in sleep.call_args_list] == [0.4, 0.8]
        assert client.usage_stats.http_requests == 3
        assert client.usage_stats.successful_responses == 0

    def test_zero_retries_means_single_attempt(self):
        client, _, sleep = make_client([openai.APIConnectionError(request=REQUEST)], retries=0)
        with pytest.raises(LLMAPIError) as excinfo:
            client.create_chat_completion("m", MESSAGES)
        assert excinfo.value.status is None
        sleep.assert_not_called()

    def test_missing_choices_is_api_error(self):
        empty = SimpleNamespace(choices=[], model="m", usage=None)
        client, _, _ = make_client([empty], retries=0)
        with pytest.raises(LLMAPIError, match="no choices"):
            client.create_chat_completion("m", MESSAGES)

    def test_usage_stats_copy_and_reset(self):
        client, _, _ = make_client([make_openai_response()])
        client.create_chat_completion("m", MESSAGES)
        snapshot = client.usage_stats
        snapshot.http_requests = 99
        assert client.usage_stats.http_requests == 1

        client.reset_usage_stats()
        assert client.usage_stats.http_requests == 0


# ---------------------------------------------------------------------------
# Anthropic provider
# ---------------------------------------------------------------------------

class TestAnthropicProvider:

    def test_system_messages_are_lifted(self):
        response = SimpleNamespace(
            content=[SimpleNamespace(type="text", text=" diff text ")],
            model="claude-sonnet",
            usage=SimpleNamespace(input_tokens=3, output_tokens=4),
        )
        client, sdk, _ = make_client([response], provider="anthropic")
        completion = client.create_chat_completion("claude-sonnet", MESSAGES, 0.1)

        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["system"] == "be brief"
        assert kwargs["messages"] == [{"role": "user", "content": "hello"}]
        assert completion.content == "diff text"
        assert completion.total_tokens == 7


# ---------------------------------------------------------------------------
# Misc
# ---------------------------------------------------------------------------

class TestClientMisc:

    def test_unsupported_provider(self):
        with pytest.raises(ValueError, match="Unsupported LLM provider"):
            ChatClient(provider="bogus", api_key="k", sdk_client=MagicMock())

    @pytest.mark.parametrize(
        "error, expected",
        [
            (LLMTimeoutError("t"), True),
            (LLMAPIError("conn"), True),
            (LLMAPIError("rate", status=429), True),
            (LLMAPIError("server", status=502), True),
            (LLMAPIError("bad", status=401), False),
            (ValueError("other"), False),
        ],
    )
    def test_is_retriable(self, error, expected):
        assert is_retriable(error) is expected
