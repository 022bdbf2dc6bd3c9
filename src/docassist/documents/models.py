"""Value objects exchanged with document and comment stores."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Sequence

__all__ = ["DocumentSnapshot", "Mention", "MentionReply", "utc_now"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class DocumentSnapshot:
    """Immutable snapshot of a document's state.

    Attributes:
        document_id: Opaque identity of the document.
        title: Document title shown to the model.
        full_text: Full plain-text body.
        captured_at: When the snapshot was read from the store.
    """

    document_id: str
    title: str
    full_text: str
    captured_at: datetime = field(default_factory=utc_now)


@dataclass(slots=True, frozen=True)
class MentionReply:
    """A reply already posted under a mention."""

    body_text: str


@dataclass(slots=True, frozen=True)
class Mention:
    """An inbound comment that may address the assistant.

    ``quoted_text`` is the anchored range as reported by the backend, when the
    backend reports one. It is only consulted when exact anchor resolution is
    enabled.
    """

    id: str
    body_text: str | None
    anchor_ref: str | None = None
    existing_replies: Sequence[MentionReply] = ()
    quoted_text: str | None = None
