"""Async AI client wrapper built around OpenAI-compatible endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

import httpx
from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI, RateLimitError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import AiCallFailure, ConfigError
from .protocol import PromptPayload
from .tokens import TokenCounterProtocol, TokenCounterRegistry

__all__ = ["AIClient", "AIResponse", "ClientSettings", "TokenUsage", "EPHEMERAL_CACHE_CONTROL"]

LOGGER = logging.getLogger(__name__)

EPHEMERAL_CACHE_CONTROL: Mapping[str, str] = {"type": "ephemeral"}


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the AI client.

    ``max_attempts`` of 1 means a failed call is reported immediately;
    callers own any retry policy.
    """

    base_url: str
    api_key: str
    model: str
    request_timeout: float | None = 90.0
    temperature: float | None = None
    max_attempts: int = 1
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    prompt_caching: bool = True
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False


@dataclass(slots=True, frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cached_tokens: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "cached_tokens": self.cached_tokens,
        }


@dataclass(slots=True, frozen=True)
class AIResponse:
    """Text reply plus provider-reported usage."""

    text: str
    usage: TokenUsage
    model: str | None = None


class AIClient:
    """Async client issuing single chat completions for a :class:`PromptPayload`."""

    def __init__(
        self,
        settings: ClientSettings,
        *,
        client: AsyncOpenAI | None = None,
        token_registry: TokenCounterRegistry | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._token_registry = token_registry or TokenCounterRegistry.global_instance()

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def has_credentials(self) -> bool:
        return bool((self._settings.api_key or "").strip())

    def require_credentials(self) -> None:
        """Raise :class:`ConfigError` when no API key is configured."""
        if not self.has_credentials:
            raise ConfigError()

    async def complete(self, payload: PromptPayload) -> AIResponse:
        """Send ``payload`` and return the reply text.

        Raises:
            ConfigError: No API key is configured.
            AiCallFailure: Transport error, non-2xx status, or malformed payload.
        """
        self.require_credentials()
        request = self._build_request(payload)
        LOGGER.debug(
            "Starting chat completion via %s (%d system segment(s), max_tokens=%s)",
            request["model"],
            len(payload.system),
            payload.max_output_tokens,
        )
        if self._settings.debug_logging:
            self._log_prompt_payload(payload)

        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._get_client().chat.completions.create(**request)
        except APIStatusError as exc:
            raise AiCallFailure(
                message=f"AI request failed with HTTP {exc.status_code}",
                status=exc.status_code,
                detail=_response_text(exc.response),
            ) from exc
        except (APIConnectionError, httpx.TimeoutException) as exc:
            raise AiCallFailure(message=f"AI request could not reach the endpoint: {exc}", detail=str(exc)) from exc
        except APIError as exc:
            raise AiCallFailure(message=f"AI request failed: {exc}", detail=str(exc)) from exc
        return self._parse_response(response, request["model"])

    def count_tokens(self, text: str, *, model: str | None = None) -> int:
        return self.get_token_counter(model).count(text)

    def get_token_counter(self, model: str | None = None) -> TokenCounterProtocol:
        return self._token_registry.ensure(model or self._settings.model)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = self._build_client(self._settings)
        return self._client

    def _build_client(self, settings: ClientSettings) -> AsyncOpenAI:
        headers = dict(settings.default_headers) if settings.default_headers else None
        return AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.request_timeout,
            default_headers=headers,
            max_retries=0,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_attempts)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(
                (
                    APIConnectionError,
                    RateLimitError,
                    httpx.TimeoutException,
                )
            ),
        )

    def _build_request(self, payload: PromptPayload) -> Dict[str, Any]:
        request: Dict[str, Any] = {
            "model": payload.model or self._settings.model,
            "messages": [
                {"role": "system", "content": self._system_content(payload)},
                {"role": "user", "content": payload.user_content},
            ],
            "max_tokens": payload.max_output_tokens,
        }
        if self._settings.temperature is not None:
            request["temperature"] = self._settings.temperature
        return request

    def _system_content(self, payload: PromptPayload) -> List[Dict[str, Any]]:
        parts: List[Dict[str, Any]] = []
        for segment in payload.system:
            part: Dict[str, Any] = {"type": "text", "text": segment.text}
            if segment.cacheable and self._settings.prompt_caching:
                part["cache_control"] = dict(EPHEMERAL_CACHE_CONTROL)
            parts.append(part)
        return parts

    def _parse_response(self, response: Any, model: str) -> AIResponse:
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise AiCallFailure(message="AI response contained no choices", detail=repr(response)[:500])
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if not isinstance(content, str):
            raise AiCallFailure(message="AI response contained no text content", detail=repr(message)[:500])
        usage = _usage_from_response(getattr(response, "usage", None))
        LOGGER.debug(
            "Chat completion finished (prompt=%d, completion=%d, cached=%d tokens)",
            usage.prompt_tokens,
            usage.completion_tokens,
            usage.cached_tokens,
        )
        return AIResponse(text=content, usage=usage, model=getattr(response, "model", None) or model)

    def _log_prompt_payload(self, payload: PromptPayload) -> None:
        system_text = payload.system_text()
        LOGGER.debug(
            "Prompt payload: system=%d chars (~%d tokens), user=%d chars (~%d tokens)",
            len(system_text),
            self.count_tokens(system_text, model=payload.model),
            len(payload.user_content),
            self.count_tokens(payload.user_content, model=payload.model),
        )


def _usage_from_response(usage: Any) -> TokenUsage:
    if usage is None:
        return TokenUsage()
    details = getattr(usage, "prompt_tokens_details", None)
    cached = getattr(details, "cached_tokens", None) if details is not None else None
    return TokenUsage(
        prompt_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
        completion_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
        cached_tokens=int(cached or 0),
    )


def _response_text(response: httpx.Response | None) -> str:
    if response is None:
        return ""
    try:
        return response.text[:500]
    except httpx.ResponseNotRead:  # pragma: no cover - streamed bodies
        return ""
