"""File-backed document and comment store.

The document is a UTF-8 text file. Comments live in an optional JSON sidecar
holding a list of objects shaped like::

    {"id": "c1", "content": "@claude tighten this", "anchor": "kix.1",
     "quoted_text": "...", "replies": [{"content": "..."}]}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

from ..errors import StoreAccessFailure
from .models import DocumentSnapshot, Mention, MentionReply, utc_now
from .stores import placeholder_snippet

__all__ = ["LocalDocumentStore"]

LOGGER = logging.getLogger(__name__)


class LocalDocumentStore:
    """Document + comment store reading from the local filesystem."""

    def __init__(
        self,
        document_path: Path,
        *,
        comments_path: Path | None = None,
        selection: str | None = None,
        exact_anchor_text: bool = False,
    ) -> None:
        self._document_path = Path(document_path)
        self._comments_path = Path(comments_path) if comments_path else None
        self._selection = selection
        self._exact_anchor_text = exact_anchor_text
        self._quoted_by_anchor: Dict[str, str] = {}

    def set_selection(self, selection: str | None) -> None:
        self._selection = selection

    async def get_document_snapshot(self) -> DocumentSnapshot:
        try:
            text = self._document_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreAccessFailure(
                message=f"Unable to read document {self._document_path}: {exc}",
                operation="get_document_snapshot",
            ) from exc
        return DocumentSnapshot(
            document_id=str(self._document_path.resolve()),
            title=self._document_path.stem,
            full_text=text,
            captured_at=utc_now(),
        )

    async def get_selection_text(self) -> str | None:
        return self._selection or None

    async def get_anchored_text(self, anchor_ref: str) -> str | None:
        if self._exact_anchor_text:
            quoted = self._quoted_by_anchor.get(anchor_ref)
            if quoted:
                return quoted
        snapshot = await self.get_document_snapshot()
        return placeholder_snippet(snapshot.full_text)

    async def list_mention_candidates(self) -> Sequence[Mention]:
        mentions = [_mention_from_payload(entry) for entry in self._read_comments()]
        self._quoted_by_anchor = {
            mention.anchor_ref: mention.quoted_text
            for mention in mentions
            if mention.anchor_ref and mention.quoted_text
        }
        return mentions

    async def post_reply(self, mention_id: str, body_text: str) -> bool:
        entries = self._read_comments()
        for entry in entries:
            if str(entry.get("id")) == mention_id:
                replies = entry.setdefault("replies", [])
                replies.append({"content": body_text})
                break
        else:
            LOGGER.warning("Comment %s not found in %s", mention_id, self._comments_path)
            return False
        self._write_comments(entries)
        return True

    def _read_comments(self) -> List[Dict[str, Any]]:
        path = self._comments_path
        if path is None or not path.exists():
            return []
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreAccessFailure(
                message=f"Unable to read comments from {path}: {exc}",
                operation="list_mention_candidates",
            ) from exc
        if not isinstance(payload, list):
            raise StoreAccessFailure(
                message=f"Comments file {path} must contain a JSON list",
                operation="list_mention_candidates",
            )
        return [entry for entry in payload if isinstance(entry, dict)]

    def _write_comments(self, entries: List[Dict[str, Any]]) -> None:
        path = self._comments_path
        if path is None:
            raise StoreAccessFailure(message="No comments file configured", operation="post_reply")
        body = json.dumps(entries, indent=2, ensure_ascii=False)
        tmp_path = path.with_suffix(".tmp")
        try:
            tmp_path.write_text(body, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as exc:
            raise StoreAccessFailure(
                message=f"Unable to write comments to {path}: {exc}",
                operation="post_reply",
            ) from exc


def _mention_from_payload(entry: Mapping[str, Any]) -> Mention:
    replies = tuple(
        MentionReply(body_text=str(reply.get("content") or ""))
        for reply in entry.get("replies") or ()
        if isinstance(reply, Mapping)
    )
    return Mention(
        id=str(entry.get("id", "")),
        body_text=_optional_text(entry.get("content")),
        anchor_ref=_optional_text(entry.get("anchor")),
        existing_replies=replies,
        quoted_text=_optional_text(entry.get("quoted_text")),
    )


def _optional_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else str(value)
