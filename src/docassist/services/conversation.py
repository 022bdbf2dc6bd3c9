"""Free-form chat turns against the active document."""

from __future__ import annotations

import logging

from ..ai.client import AIClient
from ..ai.context_cache import ContextCache
from ..ai.protocol import encode_conversation
from ..documents.stores import DocumentStore
from ..errors import DocAssistError, ErrorCode
from .results import ConversationResult

__all__ = ["ConversationService"]

LOGGER = logging.getLogger(__name__)


class ConversationService:
    """Runs one chat turn: document context in, model reply out."""

    def __init__(
        self,
        *,
        document_store: DocumentStore,
        ai_client: AIClient,
        cache: ContextCache,
        max_output_tokens: int = 1_024,
    ) -> None:
        self._documents = document_store
        self._ai = ai_client
        self._cache = cache
        self._max_output_tokens = max_output_tokens

    async def converse(self, user_message: str, has_selection: bool = False) -> ConversationResult:
        """Answer ``user_message`` using the document (and selection) as context.

        Never raises; failures come back as ``success=False`` with a short
        message while the full detail goes to the log.
        """
        try:
            return await self._converse(user_message, has_selection)
        except DocAssistError as exc:
            LOGGER.warning("Chat turn failed: %s", exc, exc_info=exc.error_code != ErrorCode.MISSING_CREDENTIAL)
            return ConversationResult(success=False, error=exc.message, error_code=exc.error_code)
        except Exception as exc:
            LOGGER.exception("Unexpected error during chat turn")
            return ConversationResult(success=False, error=str(exc) or type(exc).__name__, error_code=ErrorCode.INTERNAL_ERROR)

    async def _converse(self, user_message: str, has_selection: bool) -> ConversationResult:
        self._ai.require_credentials()
        snapshot = await self._documents.get_document_snapshot()

        selection: str | None = None
        if has_selection:
            # The selection may have been cleared since the host checked.
            selection = await self._documents.get_selection_text() or None

        context = self._cache.get_context(snapshot)
        reused = self._cache.last_hit
        if LOGGER.isEnabledFor(logging.DEBUG):
            LOGGER.debug(
                "Chat context for %s: %d chars (~%d tokens, reused=%s)",
                snapshot.document_id,
                len(context),
                self._ai.count_tokens(context),
                reused,
            )

        payload = encode_conversation(
            user_message,
            title=snapshot.title,
            context=context,
            selection=selection,
            max_output_tokens=self._max_output_tokens,
        )
        response = await self._ai.complete(payload)
        return ConversationResult(
            success=True,
            reply_text=response.text,
            selection_text=selection,
            usage=response.usage,
            context_reused=reused,
        )
