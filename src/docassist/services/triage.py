"""Batch processing of comments that mention the assistant."""

from __future__ import annotations

import logging

from ..ai.client import AIClient
from ..ai.context_cache import ContextCache
from ..ai.protocol import Action, Ignore, ReplyToComment, SuggestEdit, decode_action, encode_triage
from ..documents.models import DocumentSnapshot, Mention
from ..documents.stores import CommentStore, DocumentStore
from ..errors import DocAssistError, ErrorCode
from .results import MentionFailure, MentionOutcome, TriageResult

__all__ = ["MentionTriageService", "format_reply"]

LOGGER = logging.getLogger(__name__)


class MentionTriageService:
    """Answers every unanswered comment containing the trigger token.

    Mentions are handled one at a time in store order. A failure on one
    mention is recorded and the pass moves on; only a failure to list the
    comments fails the whole pass.
    """

    def __init__(
        self,
        *,
        document_store: DocumentStore,
        comment_store: CommentStore,
        ai_client: AIClient,
        cache: ContextCache,
        trigger_token: str = "@claude",
        reply_prefix: str = "[Claude]",
        edit_disclaimer: str = "(Suggested edit - apply this change manually.)",
        max_output_tokens: int = 1_024,
    ) -> None:
        if not trigger_token:
            raise ValueError("trigger_token must not be empty")
        if not reply_prefix:
            raise ValueError("reply_prefix must not be empty")
        self._documents = document_store
        self._comments = comment_store
        self._ai = ai_client
        self._cache = cache
        self._trigger = trigger_token.lower()
        self._reply_prefix = reply_prefix
        self._edit_disclaimer = edit_disclaimer
        self._max_output_tokens = max_output_tokens

    def is_candidate(self, mention: Mention) -> bool:
        """Whether ``mention`` addresses the assistant and has not been answered yet."""
        body = mention.body_text
        if not isinstance(body, str) or self._trigger not in body.lower():
            return False
        return not any(self._reply_prefix in (reply.body_text or "") for reply in mention.existing_replies)

    async def process_mentions(self) -> TriageResult:
        """Run one triage pass over the document's comments. Never raises."""
        try:
            self._ai.require_credentials()
            mentions = await self._comments.list_mention_candidates()
        except DocAssistError as exc:
            LOGGER.warning("Mention pass aborted: %s", exc)
            return TriageResult(success=False, error=exc.message, error_code=exc.error_code)
        except Exception as exc:
            LOGGER.exception("Unexpected error listing mentions")
            return TriageResult(success=False, error=str(exc) or type(exc).__name__, error_code=ErrorCode.INTERNAL_ERROR)

        result = TriageResult(success=True)
        pass_state = _PassState()
        for mention in mentions:
            try:
                if not self.is_candidate(mention):
                    continue
                action = await self._triage(mention, pass_state)
            except DocAssistError as exc:
                LOGGER.warning("Mention %s failed: %s", mention.id, exc)
                result.failures.append(MentionFailure(mention.id, exc.message, exc.error_code))
                continue
            except Exception as exc:
                LOGGER.exception("Unexpected error triaging mention %s", mention.id)
                result.failures.append(
                    MentionFailure(mention.id, str(exc) or type(exc).__name__, ErrorCode.INTERNAL_ERROR)
                )
                continue
            if isinstance(action, Ignore):
                LOGGER.debug("Mention %s needs no response", mention.id)
                continue
            outcome = await self._dispatch(mention, action)
            result.outcomes.append(outcome)

        result.processed_count = sum(1 for outcome in result.outcomes if outcome.success)
        LOGGER.info(
            "Mention pass finished: %d dispatched, %d replied, %d failed",
            len(result.outcomes),
            result.processed_count,
            len(result.failures),
        )
        return result

    async def _triage(self, mention: Mention, state: "_PassState") -> Action:
        snapshot = await state.snapshot(self._documents)
        if state.context is None:
            # A pass always starts from the live document; later mentions share it.
            state.context = self._cache.get_context(snapshot, force_refresh=True)

        anchored_text = await self._resolve_anchor(mention)
        payload = encode_triage(
            mention.body_text or "",
            title=snapshot.title,
            context=state.context,
            anchored_text=anchored_text,
            max_output_tokens=self._max_output_tokens,
        )
        response = await self._ai.complete(payload)
        action = decode_action(response.text)
        LOGGER.debug("Mention %s decoded as %s", mention.id, action.kind)
        return action

    async def _resolve_anchor(self, mention: Mention) -> str | None:
        if not mention.anchor_ref:
            return None
        try:
            return await self._documents.get_anchored_text(mention.anchor_ref)
        except Exception as exc:
            LOGGER.warning(
                "Anchored text unavailable for mention %s: %s",
                mention.id,
                exc,
                exc_info=not isinstance(exc, DocAssistError),
            )
            return None

    async def _dispatch(self, mention: Mention, action: SuggestEdit | ReplyToComment) -> MentionOutcome:
        body = format_reply(action, prefix=self._reply_prefix, disclaimer=self._edit_disclaimer)
        try:
            posted = await self._comments.post_reply(mention.id, body)
        except Exception as exc:
            LOGGER.warning("Reply to mention %s failed: %s", mention.id, exc, exc_info=not isinstance(exc, DocAssistError))
            posted = False
        if posted is False:
            LOGGER.warning("Reply to mention %s was not posted", mention.id)
        return MentionOutcome(mention_id=mention.id, action=action.kind, success=posted is not False)


def format_reply(action: SuggestEdit | ReplyToComment, *, prefix: str, disclaimer: str) -> str:
    """Render the reply body posted under a mention."""
    if isinstance(action, SuggestEdit):
        return f"{prefix} Suggested edit:\n\n{action.new_text}\n\n{disclaimer}"
    return f"{prefix} {action.response_text}"


class _PassState:
    """Document state shared by the mentions of one pass."""

    def __init__(self) -> None:
        self._snapshot: DocumentSnapshot | None = None
        self.context: str | None = None

    async def snapshot(self, store: DocumentStore) -> DocumentSnapshot:
        if self._snapshot is None:
            self._snapshot = await store.get_document_snapshot()
        return self._snapshot
