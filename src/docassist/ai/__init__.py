"""AI client, context cache and action protocol."""

from .client import AIClient, AIResponse, ClientSettings, TokenUsage
from .context_cache import CacheConfig, ContextCache
from .protocol import Ignore, PromptPayload, ReplyToComment, SuggestEdit, decode_action

__all__ = [
    "AIClient",
    "AIResponse",
    "CacheConfig",
    "ClientSettings",
    "ContextCache",
    "Ignore",
    "PromptPayload",
    "ReplyToComment",
    "SuggestEdit",
    "TokenUsage",
    "decode_action",
]
