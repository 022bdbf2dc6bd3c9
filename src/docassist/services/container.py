"""Service container wiring the cache, AI client and stores together."""

from __future__ import annotations

from dataclasses import dataclass

from ..ai.client import AIClient
from ..ai.context_cache import CacheConfig, ContextCache
from ..documents.stores import CommentStore, DocumentStore
from .conversation import ConversationService
from .settings import Settings
from .triage import MentionTriageService

__all__ = ["Services", "create_services"]


@dataclass(slots=True)
class Services:
    """Container holding the services one host session needs.

    Both services share ``cache`` so a chat turn right after a triage pass
    reuses the document text the pass just sent.

    Example:
        >>> services = create_services(settings, document_store=store, comment_store=store)
        >>> result = await services.conversation.converse("Summarize this")
    """

    cache: ContextCache
    ai_client: AIClient
    conversation: ConversationService
    triage: MentionTriageService

    async def aclose(self) -> None:
        await self.ai_client.aclose()


def create_services(
    settings: Settings,
    *,
    document_store: DocumentStore,
    comment_store: CommentStore,
    ai_client: AIClient | None = None,
    cache: ContextCache | None = None,
) -> Services:
    """Build :class:`Services` from ``settings`` and the host's stores."""

    client = ai_client or AIClient(settings.client_settings())
    shared_cache = cache or ContextCache(
        CacheConfig(
            freshness_window_ms=settings.freshness_window_ms,
            max_entries=settings.cache_max_entries,
        )
    )
    conversation = ConversationService(
        document_store=document_store,
        ai_client=client,
        cache=shared_cache,
        max_output_tokens=settings.max_output_tokens,
    )
    triage = MentionTriageService(
        document_store=document_store,
        comment_store=comment_store,
        ai_client=client,
        cache=shared_cache,
        trigger_token=settings.trigger_token,
        reply_prefix=settings.reply_prefix,
        edit_disclaimer=settings.edit_disclaimer,
        max_output_tokens=settings.max_output_tokens,
    )
    return Services(cache=shared_cache, ai_client=client, conversation=conversation, triage=triage)
