"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Sequence

from docassist.ai.client import AIResponse, TokenUsage
from docassist.ai.protocol import PromptPayload
from docassist.documents.models import DocumentSnapshot, Mention, MentionReply
from docassist.errors import ConfigError, StoreAccessFailure

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_snapshot(
    document_id: str = "doc-1",
    text: str = "Original document text.",
    *,
    title: str = "Draft",
    offset_ms: int = 0,
) -> DocumentSnapshot:
    return DocumentSnapshot(
        document_id=document_id,
        title=title,
        full_text=text,
        captured_at=BASE_TIME + timedelta(milliseconds=offset_ms),
    )


def make_mention(
    mention_id: str,
    body: str | None,
    *,
    anchor: str | None = None,
    replies: Sequence[str] = (),
    quoted: str | None = None,
) -> Mention:
    return Mention(
        id=mention_id,
        body_text=body,
        anchor_ref=anchor,
        existing_replies=tuple(MentionReply(text) for text in replies),
        quoted_text=quoted,
    )


class FakeDocumentStore:
    """In-memory document store; snapshots are served in order, the last one repeats."""

    def __init__(
        self,
        snapshots: Sequence[DocumentSnapshot] | None = None,
        *,
        selection: str | None = None,
        anchored: dict[str, str] | None = None,
        fail_anchor: bool = False,
        anchor_error: Exception | None = None,
    ) -> None:
        self._snapshots = list(snapshots or [make_snapshot()])
        self.selection = selection
        self.anchored = dict(anchored or {})
        self.fail_anchor = fail_anchor
        self.anchor_error = anchor_error
        self.snapshot_calls = 0
        self.selection_calls = 0
        self.anchor_calls: list[str] = []

    async def get_document_snapshot(self) -> DocumentSnapshot:
        index = min(self.snapshot_calls, len(self._snapshots) - 1)
        self.snapshot_calls += 1
        return self._snapshots[index]

    async def get_selection_text(self) -> str | None:
        self.selection_calls += 1
        return self.selection

    async def get_anchored_text(self, anchor_ref: str) -> str | None:
        self.anchor_calls.append(anchor_ref)
        if self.anchor_error is not None:
            raise self.anchor_error
        if self.fail_anchor:
            raise StoreAccessFailure(message="anchor lookup failed", operation="get_anchored_text")
        return self.anchored.get(anchor_ref)


class FakeCommentStore:
    """In-memory comment store recording posted replies."""

    def __init__(
        self,
        mentions: Sequence[Mention] = (),
        *,
        fail_listing: bool = False,
        failing_replies: Sequence[str] = (),
    ) -> None:
        self.mentions = list(mentions)
        self.fail_listing = fail_listing
        self.failing_replies = set(failing_replies)
        self.posted: list[tuple[str, str]] = []

    async def list_mention_candidates(self) -> Sequence[Mention]:
        if self.fail_listing:
            raise StoreAccessFailure(message="listing failed", operation="list_mention_candidates")
        return list(self.mentions)

    async def post_reply(self, mention_id: str, body_text: str) -> bool:
        if mention_id in self.failing_replies:
            raise StoreAccessFailure(message="reply failed", operation="post_reply")
        self.posted.append((mention_id, body_text))
        # Mirror the backend: the reply now shows up on the comment.
        for index, mention in enumerate(self.mentions):
            if mention.id == mention_id:
                replies = (*mention.existing_replies, MentionReply(body_text))
                self.mentions[index] = Mention(
                    id=mention.id,
                    body_text=mention.body_text,
                    anchor_ref=mention.anchor_ref,
                    existing_replies=replies,
                    quoted_text=mention.quoted_text,
                )
        return True


class ScriptedAIClient:
    """AI client stub replaying canned replies (strings) or raising canned errors."""

    def __init__(self, replies: Sequence[str | Exception] = (), *, api_key: str = "test-key") -> None:
        self._replies = list(replies)
        self.api_key = api_key
        self.payloads: list[PromptPayload] = []
        self.closed = False

    def push(self, *replies: str | Exception) -> None:
        self._replies.extend(replies)

    def require_credentials(self) -> None:
        if not self.api_key:
            raise ConfigError()

    async def complete(self, payload: PromptPayload) -> AIResponse:
        self.require_credentials()
        self.payloads.append(payload)
        reply = self._replies.pop(0) if self._replies else "ACTION: IGNORE"
        if isinstance(reply, Exception):
            raise reply
        return AIResponse(text=reply, usage=TokenUsage(prompt_tokens=10, completion_tokens=5))

    def count_tokens(self, text: str, *, model: str | None = None) -> int:
        return len(text) // 4

    async def aclose(self) -> None:
        self.closed = True
