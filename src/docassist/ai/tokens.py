"""Token estimation helpers used for prompt-size logging."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Protocol

import tiktoken

__all__ = [
    "TokenCounterProtocol",
    "ApproxByteCounter",
    "TiktokenCounter",
    "TokenCounterRegistry",
]

LOGGER = logging.getLogger(__name__)
_DEFAULT_BYTES_PER_TOKEN = 4
_FALLBACK_ENCODING = "cl100k_base"


class TokenCounterProtocol(Protocol):
    """Protocol describing tokenizer implementations."""

    model_name: str | None

    def count(self, text: str) -> int:
        """Return the precise token count for *text*."""
        ...

    def estimate(self, text: str) -> int:
        """Return a deterministic fallback estimate when precise counts fail."""
        ...


class ApproxByteCounter:
    """Deterministic fallback counter that estimates tokens via byte length."""

    def __init__(self, *, model_name: str | None = None, charset: str = "utf-8", bytes_per_token: int = _DEFAULT_BYTES_PER_TOKEN) -> None:
        self.model_name = model_name
        self._charset = charset
        self._bytes_per_token = max(1, int(bytes_per_token))

    def count(self, text: str) -> int:
        return self.estimate(text)

    def estimate(self, text: str) -> int:
        if not text:
            return 0
        data = text.encode(self._charset, errors="ignore")
        return max(1, math.ceil(len(data) / self._bytes_per_token))


class TiktokenCounter:
    """Token counter backed by OpenAI's tiktoken package.

    Models tiktoken does not know (any non-OpenAI model) use ``cl100k_base``,
    which is close enough for size logging.
    """

    def __init__(self, model_name: str, *, encoding_name: str | None = None) -> None:
        if not model_name:
            raise ValueError("model_name is required for TiktokenCounter")
        self.model_name = model_name
        self._encoding = self._load_encoding(model_name, encoding_name)
        self._fallback = ApproxByteCounter(model_name=model_name)

    def count(self, text: str) -> int:
        if not text:
            return 0
        if self._encoding is None:
            return self._fallback.estimate(text)
        return len(self._encoding.encode(text, disallowed_special=()))

    def estimate(self, text: str) -> int:
        return self._fallback.estimate(text)

    def _load_encoding(self, model_name: str, encoding_name: str | None) -> Any:
        try:
            if encoding_name:
                return tiktoken.get_encoding(encoding_name)
            return tiktoken.encoding_for_model(model_name)
        except KeyError:
            LOGGER.debug("Falling back to %s encoding for model %s", _FALLBACK_ENCODING, model_name)
        try:
            return tiktoken.get_encoding(_FALLBACK_ENCODING)
        except Exception as exc:  # pragma: no cover - encoding download unavailable
            LOGGER.warning("tiktoken encoding unavailable (%s); using byte estimates", exc)
            return None


class TokenCounterRegistry:
    """Registry maintaining tokenizer implementations per model."""

    _shared: TokenCounterRegistry | None = None

    def __init__(self, *, fallback: TokenCounterProtocol | None = None) -> None:
        self._fallback = fallback or ApproxByteCounter()
        self._counters: Dict[str, TokenCounterProtocol] = {}

    @classmethod
    def global_instance(cls) -> "TokenCounterRegistry":
        if cls._shared is None:
            cls._shared = TokenCounterRegistry()
        return cls._shared

    def register(self, model_name: str, counter: TokenCounterProtocol) -> None:
        key = self._normalize_key(model_name)
        if not key:
            raise ValueError("model_name is required for token counter registration")
        self._counters[key] = counter

    def ensure(self, model_name: str | None) -> TokenCounterProtocol:
        """Return the counter for ``model_name``, building a tiktoken one on first use."""
        key = self._normalize_key(model_name)
        if not key:
            return self._fallback
        if key not in self._counters:
            self._counters[key] = TiktokenCounter(key)
        return self._counters[key]

    @staticmethod
    def _normalize_key(model_name: str | None) -> str:
        return (model_name or "").strip().lower()
