"""Google Docs / Drive REST store.

Reads the document body through the Docs API and lists/replies to comments
through the Drive v3 comments API. Authentication is a caller-supplied OAuth
bearer token; scope negotiation belongs to the host.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import httpx

from ..errors import StoreAccessFailure
from .models import DocumentSnapshot, Mention, MentionReply, utc_now
from .stores import placeholder_snippet

__all__ = ["GoogleDocsStore", "DOCS_API_BASE", "DRIVE_API_BASE"]

LOGGER = logging.getLogger(__name__)

DOCS_API_BASE = "https://docs.googleapis.com/v1"
DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"
_COMMENT_FIELDS = "comments(id,content,anchor,deleted,quotedFileContent,replies(content,deleted))"


class GoogleDocsStore:
    """Document + comment store backed by the Google Docs and Drive APIs."""

    def __init__(
        self,
        document_id: str,
        access_token: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = 30.0,
        exact_anchor_text: bool = False,
    ) -> None:
        if not document_id:
            raise ValueError("document_id is required")
        self._document_id = document_id
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._headers = {"Authorization": f"Bearer {access_token}"}
        self._exact_anchor_text = exact_anchor_text
        self._quoted_by_anchor: Dict[str, str] = {}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def get_document_snapshot(self) -> DocumentSnapshot:
        payload = await self._request(
            "GET",
            f"{DOCS_API_BASE}/documents/{self._document_id}",
            operation="get_document_snapshot",
        )
        body = payload.get("body") or {}
        text = "".join(_collect_text(body.get("content") or ()))
        return DocumentSnapshot(
            document_id=self._document_id,
            title=str(payload.get("title") or ""),
            full_text=text,
            captured_at=utc_now(),
        )

    async def get_selection_text(self) -> str | None:
        # The REST API has no view of the user's live selection.
        return None

    async def get_anchored_text(self, anchor_ref: str) -> str | None:
        if self._exact_anchor_text:
            quoted = self._quoted_by_anchor.get(anchor_ref)
            if quoted:
                return quoted
        snapshot = await self.get_document_snapshot()
        return placeholder_snippet(snapshot.full_text)

    async def list_mention_candidates(self) -> Sequence[Mention]:
        payload = await self._request(
            "GET",
            f"{DRIVE_API_BASE}/files/{self._document_id}/comments",
            params={"fields": _COMMENT_FIELDS, "pageSize": 100},
            operation="list_mention_candidates",
        )
        mentions: List[Mention] = []
        for entry in payload.get("comments") or ():
            if not isinstance(entry, Mapping) or entry.get("deleted"):
                continue
            mentions.append(_mention_from_comment(entry))
        self._quoted_by_anchor = {
            mention.anchor_ref: mention.quoted_text
            for mention in mentions
            if mention.anchor_ref and mention.quoted_text
        }
        LOGGER.debug("Listed %d comment(s) on %s", len(mentions), self._document_id)
        return mentions

    async def post_reply(self, mention_id: str, body_text: str) -> bool:
        await self._request(
            "POST",
            f"{DRIVE_API_BASE}/files/{self._document_id}/comments/{mention_id}/replies",
            params={"fields": "id"},
            json={"content": body_text},
            operation="post_reply",
        )
        return True

    async def _request(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        params: Mapping[str, Any] | None = None,
        json: Any | None = None,
    ) -> Dict[str, Any]:
        try:
            response = await self._client.request(
                method, url, params=params, json=json, headers=self._headers
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise StoreAccessFailure(
                message=f"{operation} failed with HTTP {exc.response.status_code}",
                details={"status": exc.response.status_code, "body": exc.response.text[:500]},
                operation=operation,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise StoreAccessFailure(
                message=f"{operation} failed: {exc}",
                operation=operation,
            ) from exc
        if not isinstance(data, dict):
            raise StoreAccessFailure(message=f"{operation} returned a non-object payload", operation=operation)
        return data


def _collect_text(elements: Iterable[Mapping[str, Any]]) -> Iterable[str]:
    for element in elements:
        paragraph = element.get("paragraph")
        if paragraph:
            for item in paragraph.get("elements") or ():
                run = item.get("textRun")
                if run and run.get("content"):
                    yield run["content"]
            continue
        table = element.get("table")
        if table:
            for row in table.get("tableRows") or ():
                for cell in row.get("tableCells") or ():
                    yield from _collect_text(cell.get("content") or ())
            continue
        toc = element.get("tableOfContents")
        if toc:
            yield from _collect_text(toc.get("content") or ())


def _mention_from_comment(entry: Mapping[str, Any]) -> Mention:
    replies = tuple(
        MentionReply(body_text=str(reply.get("content") or ""))
        for reply in entry.get("replies") or ()
        if isinstance(reply, Mapping) and not reply.get("deleted")
    )
    quoted = entry.get("quotedFileContent") or {}
    return Mention(
        id=str(entry.get("id", "")),
        body_text=entry.get("content"),
        anchor_ref=entry.get("anchor") or None,
        existing_replies=replies,
        quoted_text=quoted.get("value") or None,
    )
