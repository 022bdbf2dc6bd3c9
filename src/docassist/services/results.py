"""Structured results returned to the host by the services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List

from ..ai.client import TokenUsage
from ..ai.protocol import ActionKind

__all__ = ["ConversationResult", "MentionFailure", "MentionOutcome", "TriageResult"]


@dataclass(slots=True)
class ConversationResult:
    success: bool
    reply_text: str | None = None
    selection_text: str | None = None
    usage: TokenUsage | None = None
    context_reused: bool = False
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.success:
            data["reply"] = self.reply_text
            data["selection"] = self.selection_text
            data["context_reused"] = self.context_reused
            if self.usage is not None:
                data["usage"] = self.usage.to_dict()
        else:
            data["error"] = self.error
            data["error_code"] = self.error_code
        return data


@dataclass(slots=True, frozen=True)
class MentionOutcome:
    """A dispatched action and whether its reply was posted."""

    mention_id: str
    action: ActionKind
    success: bool

    def to_dict(self) -> dict[str, Any]:
        return {"mention_id": self.mention_id, "action": self.action, "success": self.success}


@dataclass(slots=True, frozen=True)
class MentionFailure:
    """A mention that could not be triaged (no action was decoded)."""

    mention_id: str
    error: str
    error_code: str

    def to_dict(self) -> dict[str, Any]:
        return {"mention_id": self.mention_id, "error": self.error, "error_code": self.error_code}


@dataclass(slots=True)
class TriageResult:
    success: bool
    processed_count: int = 0
    outcomes: List[MentionOutcome] = field(default_factory=list)
    failures: List[MentionFailure] = field(default_factory=list)
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.success:
            data["processed_count"] = self.processed_count
            data["outcomes"] = [outcome.to_dict() for outcome in self.outcomes]
            data["failures"] = [failure.to_dict() for failure in self.failures]
        else:
            data["error"] = self.error
            data["error_code"] = self.error_code
        return data
