"""Document and comment store collaborators."""

from .local import LocalDocumentStore
from .models import DocumentSnapshot, Mention, MentionReply
from .stores import ANCHOR_SNIPPET_CHARS, CommentStore, DocumentStore, placeholder_snippet

__all__ = [
    "ANCHOR_SNIPPET_CHARS",
    "CommentStore",
    "DocumentSnapshot",
    "DocumentStore",
    "LocalDocumentStore",
    "Mention",
    "MentionReply",
    "placeholder_snippet",
]
