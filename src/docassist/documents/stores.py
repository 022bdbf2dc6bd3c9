"""Collaborator protocols for document and comment access."""

from __future__ import annotations

from typing import Protocol, Sequence

from .models import DocumentSnapshot, Mention

__all__ = [
    "ANCHOR_SNIPPET_CHARS",
    "DocumentStore",
    "CommentStore",
    "placeholder_snippet",
]

# Length of the best-effort snippet returned in place of the true anchored range.
ANCHOR_SNIPPET_CHARS = 200


class DocumentStore(Protocol):
    """Read access to the active document."""

    async def get_document_snapshot(self) -> DocumentSnapshot:
        """Capture the current document text."""
        ...

    async def get_selection_text(self) -> str | None:
        """Return the current selection, or ``None`` when nothing is selected."""
        ...

    async def get_anchored_text(self, anchor_ref: str) -> str | None:
        """Return text associated with a comment anchor (best effort)."""
        ...


class CommentStore(Protocol):
    """Listing and replying to comments on the active document."""

    async def list_mention_candidates(self) -> Sequence[Mention]:
        """Return every open comment in backend order."""
        ...

    async def post_reply(self, mention_id: str, body_text: str) -> bool:
        """Post a reply; return ``False`` or raise on failure."""
        ...


def placeholder_snippet(full_text: str, limit: int = ANCHOR_SNIPPET_CHARS) -> str | None:
    """Return the leading ``limit`` characters of the document, or ``None`` when empty."""
    snippet = (full_text or "")[:limit]
    return snippet or None
