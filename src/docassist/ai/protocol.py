"""Action protocol: prompt shaping and structured reply decoding.

The model answers triage prompts in a line-oriented text format::

    ACTION: SUGGEST_EDIT
    NEW_TEXT: replacement text

Orchestration code only sees :class:`PromptPayload` and :data:`Action`, so the
wire format can change here without touching the services.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Sequence, Union

from . import prompts

__all__ = [
    "ACTION_MARKER",
    "NEW_TEXT_MARKER",
    "RESPONSE_MARKER",
    "Action",
    "ActionKind",
    "Ignore",
    "PromptPayload",
    "ReplyToComment",
    "SuggestEdit",
    "SystemSegment",
    "decode_action",
    "encode_conversation",
    "encode_triage",
]

ACTION_MARKER = "ACTION:"
NEW_TEXT_MARKER = "NEW_TEXT:"
RESPONSE_MARKER = "RESPONSE:"

ActionKind = Literal["SUGGEST_EDIT", "REPLY_TO_COMMENT", "IGNORE"]


@dataclass(slots=True, frozen=True)
class SuggestEdit:
    new_text: str
    kind: ActionKind = field(default="SUGGEST_EDIT", init=False)


@dataclass(slots=True, frozen=True)
class ReplyToComment:
    response_text: str
    kind: ActionKind = field(default="REPLY_TO_COMMENT", init=False)


@dataclass(slots=True, frozen=True)
class Ignore:
    kind: ActionKind = field(default="IGNORE", init=False)


Action = Union[SuggestEdit, ReplyToComment, Ignore]


@dataclass(slots=True, frozen=True)
class SystemSegment:
    """One block of the system prompt.

    ``cacheable`` marks segments the provider may cache between calls.
    """

    text: str
    cacheable: bool = False


@dataclass(slots=True, frozen=True)
class PromptPayload:
    """Provider-neutral request handed to :class:`~docassist.ai.client.AIClient`."""

    system: Sequence[SystemSegment]
    user_content: str
    max_output_tokens: int
    model: str | None = None

    def system_text(self) -> str:
        return "\n\n".join(segment.text for segment in self.system)


# -----------------------------------------------------------------------------
# Encoding
# -----------------------------------------------------------------------------


def encode_conversation(
    instruction: str,
    *,
    title: str,
    context: str,
    selection: str | None = None,
    max_output_tokens: int = prompts.CHAT_TOKEN_BUDGET,
    model: str | None = None,
) -> PromptPayload:
    """Build a free-form chat request."""

    system = (
        SystemSegment(prompts.chat_persona()),
        SystemSegment(prompts.document_section(title, context), cacheable=True),
    )
    if selection:
        user_content = prompts.highlighted_request(selection, instruction, request_label="Question")
    else:
        user_content = instruction
    return PromptPayload(system=system, user_content=user_content, max_output_tokens=max_output_tokens, model=model)


def encode_triage(
    mention_body: str,
    *,
    title: str,
    context: str,
    anchored_text: str | None = None,
    max_output_tokens: int = prompts.TRIAGE_TOKEN_BUDGET,
    model: str | None = None,
) -> PromptPayload:
    """Build a comment-triage request that asks for one of the three action formats."""

    system = (
        SystemSegment(prompts.triage_persona()),
        SystemSegment(prompts.document_section(title, context), cacheable=True),
        SystemSegment(prompts.triage_format_instructions()),
    )
    if anchored_text:
        user_content = prompts.highlighted_request(anchored_text, mention_body, request_label="Comment")
    else:
        user_content = f"Comment:\n{mention_body}"
    return PromptPayload(system=system, user_content=user_content, max_output_tokens=max_output_tokens, model=model)


# -----------------------------------------------------------------------------
# Decoding
# -----------------------------------------------------------------------------


def decode_action(reply: str | None) -> Action:
    """Decode a model reply into an :data:`Action`.

    Total: malformed or unrecognised replies decode to :class:`Ignore`.
    Field markers are located with a plain substring search over the whole
    reply, so the first ``NEW_TEXT:``/``RESPONSE:`` wins wherever it appears.
    """
    if not reply:
        return Ignore()
    token = _action_token(reply)
    if token == "SUGGEST_EDIT":
        value = _field_after(reply, NEW_TEXT_MARKER)
        return Ignore() if value is None else SuggestEdit(new_text=value)
    if token == "REPLY_TO_COMMENT":
        value = _field_after(reply, RESPONSE_MARKER)
        return Ignore() if value is None else ReplyToComment(response_text=value)
    return Ignore()


def _action_token(reply: str) -> str | None:
    for line in reply.splitlines():
        stripped = line.strip()
        if stripped.startswith(ACTION_MARKER):
            return stripped[len(ACTION_MARKER):].strip()
    return None


def _field_after(reply: str, marker: str) -> str | None:
    index = reply.find(marker)
    if index < 0:
        return None
    return reply[index + len(marker):].strip()
