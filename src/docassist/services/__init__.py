"""Service layer: chat, mention triage, settings."""

from .container import Services, create_services
from .conversation import ConversationService
from .results import ConversationResult, MentionFailure, MentionOutcome, TriageResult
from .triage import MentionTriageService

__all__ = [
    "ConversationResult",
    "ConversationService",
    "MentionFailure",
    "MentionOutcome",
    "MentionTriageService",
    "Services",
    "TriageResult",
    "create_services",
]
