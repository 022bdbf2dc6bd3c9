"""Prompt templates for chat and comment triage."""

from __future__ import annotations

# Token budgets
CHAT_TOKEN_BUDGET = 1_024
TRIAGE_TOKEN_BUDGET = 1_024


def chat_persona() -> str:
    """Voice for free-form sidebar conversations."""
    return """You are Claude, a helpful writing assistant embedded in a document editor.
Answer questions about the document, suggest improvements, and help the user write.
Be concise and concrete. When the user highlights text, focus on that passage
but use the rest of the document for context."""


def triage_persona() -> str:
    """Voice for answering comments left on the document."""
    return """You are Claude, a writing assistant that responds to comments left on a document.
Each request is a single comment that mentions you. Decide whether the comment
asks for a change to the text, asks a question, or needs no response."""


def triage_format_instructions() -> str:
    """The three literal reply formats the triage decoder understands."""
    return """Respond in exactly one of these formats and nothing else.

To propose replacement text for the highlighted passage:
ACTION: SUGGEST_EDIT
NEW_TEXT: <the full replacement text>

To answer the comment:
ACTION: REPLY_TO_COMMENT
RESPONSE: <your reply to the commenter>

When no response is needed:
ACTION: IGNORE"""


def document_section(title: str, context: str) -> str:
    """Render the document block embedded in every system prompt."""
    return f"""Document title: {title or "Untitled document"}

<document>
{context}
</document>"""


def highlighted_request(highlighted: str, request: str, *, request_label: str = "Question") -> str:
    """Wrap a user request with the text it refers to."""
    return f"""Highlighted text:
<highlighted_text>
{highlighted}
</highlighted_text>

{request_label}:
{request}"""
