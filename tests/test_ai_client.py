"""Tests for the OpenAI-compatible AI client."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, cast

import httpx
import pytest
from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from docassist.ai.client import AIClient, ClientSettings
from docassist.ai.protocol import PromptPayload, SystemSegment
from docassist.ai.tokens import ApproxByteCounter, TokenCounterRegistry
from docassist.errors import AiCallFailure, ConfigError

_REQUEST = httpx.Request("POST", "http://local/chat/completions")


def _completion(text: str | None = "Hello", *, cached: int = 0) -> SimpleNamespace:
    return SimpleNamespace(
        model="stub-model",
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(
            prompt_tokens=120,
            completion_tokens=8,
            prompt_tokens_details=SimpleNamespace(cached_tokens=cached),
        ),
    )


class _FakeCompletions:
    def __init__(self, results: list[Any]):
        self._results = list(results)
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        result = self._results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def _make_client(results: list[Any], **settings_kwargs: Any) -> tuple[AIClient, _FakeCompletions]:
    completions = _FakeCompletions(results)
    fake = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    registry = TokenCounterRegistry()
    registry.register("stub", ApproxByteCounter(model_name="stub"))
    options: dict[str, Any] = {"base_url": "http://local", "api_key": "test", "model": "stub"}
    options.update(settings_kwargs)
    client = AIClient(ClientSettings(**options), client=cast(AsyncOpenAI, fake), token_registry=registry)
    return client, completions


def _payload() -> PromptPayload:
    return PromptPayload(
        system=(SystemSegment("persona"), SystemSegment("document body", cacheable=True)),
        user_content="question",
        max_output_tokens=321,
    )


@pytest.mark.asyncio
async def test_complete_builds_request_and_parses_reply() -> None:
    client, completions = _make_client([_completion("Reply text", cached=100)])

    response = await client.complete(_payload())

    assert response.text == "Reply text"
    assert response.usage.prompt_tokens == 120
    assert response.usage.completion_tokens == 8
    assert response.usage.cached_tokens == 100
    [call] = completions.calls
    assert call["model"] == "stub"
    assert call["max_tokens"] == 321
    assert "temperature" not in call
    system, user = call["messages"]
    assert user == {"role": "user", "content": "question"}
    assert system["role"] == "system"
    assert system["content"] == [
        {"type": "text", "text": "persona"},
        {"type": "text", "text": "document body", "cache_control": {"type": "ephemeral"}},
    ]


@pytest.mark.asyncio
async def test_prompt_caching_can_be_disabled() -> None:
    client, completions = _make_client([_completion()], prompt_caching=False, temperature=0.3)

    await client.complete(_payload())

    call = completions.calls[0]
    assert all("cache_control" not in part for part in call["messages"][0]["content"])
    assert call["temperature"] == 0.3


@pytest.mark.asyncio
async def test_payload_model_overrides_settings() -> None:
    client, completions = _make_client([_completion()])
    payload = PromptPayload(system=(SystemSegment("s"),), user_content="u", max_output_tokens=5, model="other")

    await client.complete(payload)

    assert completions.calls[0]["model"] == "other"


@pytest.mark.asyncio
async def test_missing_api_key_raises_config_error_without_calling() -> None:
    client, completions = _make_client([_completion()], api_key="  ")

    with pytest.raises(ConfigError):
        await client.complete(_payload())
    assert completions.calls == []


@pytest.mark.asyncio
async def test_status_error_becomes_ai_call_failure() -> None:
    response = httpx.Response(503, request=_REQUEST, text="overloaded")
    error = APIStatusError("Service unavailable", response=response, body=None)
    client, completions = _make_client([error, _completion()])

    with pytest.raises(AiCallFailure) as excinfo:
        await client.complete(_payload())

    assert excinfo.value.status == 503
    assert excinfo.value.details["status"] == 503
    assert "overloaded" in excinfo.value.detail
    assert len(completions.calls) == 1


@pytest.mark.asyncio
async def test_connection_error_is_not_retried_by_default() -> None:
    client, completions = _make_client([APIConnectionError(request=_REQUEST), _completion()])

    with pytest.raises(AiCallFailure) as excinfo:
        await client.complete(_payload())

    assert excinfo.value.status is None
    assert len(completions.calls) == 1


@pytest.mark.asyncio
async def test_connection_error_retried_when_attempts_configured() -> None:
    client, completions = _make_client(
        [APIConnectionError(request=_REQUEST), _completion("second try")],
        max_attempts=2,
        retry_min_seconds=0.0,
        retry_max_seconds=0.0,
    )

    response = await client.complete(_payload())

    assert response.text == "second try"
    assert len(completions.calls) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "completion",
    [
        SimpleNamespace(choices=[], usage=None),
        SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=None))], usage=None),
    ],
)
async def test_malformed_payload_becomes_ai_call_failure(completion: SimpleNamespace) -> None:
    client, _ = _make_client([completion])

    with pytest.raises(AiCallFailure):
        await client.complete(_payload())


@pytest.mark.asyncio
async def test_missing_usage_defaults_to_zero() -> None:
    completion = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="ok"))], usage=None)
    client, _ = _make_client([completion])

    response = await client.complete(_payload())

    assert response.usage.to_dict() == {"prompt_tokens": 0, "completion_tokens": 0, "cached_tokens": 0}
    assert response.model == "stub"


def test_count_tokens_uses_registered_counter() -> None:
    client, _ = _make_client([])

    assert client.count_tokens("abcdefgh") == 2
    assert client.count_tokens("") == 0


def test_approx_counter_rounds_up() -> None:
    counter = ApproxByteCounter(bytes_per_token=4)

    assert counter.estimate("abcde") == 2
    assert counter.count("a") == 1
