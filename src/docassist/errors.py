"""Standardized error types for docassist.

Every failure surfaced by the services maps onto one of these classes so the
host can render a short message while operators read the full detail in logs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "ErrorCode",
    "DocAssistError",
    "ConfigError",
    "AiCallFailure",
    "StoreAccessFailure",
]


class ErrorCode:
    """Constants for error codes used in service results."""

    MISSING_CREDENTIAL = "missing_credential"
    AI_CALL_FAILED = "ai_call_failed"
    STORE_ACCESS_FAILED = "store_access_failed"
    INTERNAL_ERROR = "internal_error"


@dataclass
class DocAssistError(Exception):
    """Base exception class for all docassist errors.

    Attributes:
        error_code: Machine-readable error identifier.
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for JSON results."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


@dataclass
class ConfigError(DocAssistError):
    """Raised when required configuration (the API credential) is missing."""

    error_code: str = field(default=ErrorCode.MISSING_CREDENTIAL)
    message: str = field(default="No API key configured. Set one with `docassist key set`.")
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class AiCallFailure(DocAssistError):
    """Raised when the AI endpoint returns a non-success outcome.

    ``status`` is the HTTP status when one was received, ``None`` for
    transport errors and malformed payloads.
    """

    error_code: str = field(default=ErrorCode.AI_CALL_FAILED)
    message: str = field(default="AI request failed")
    details: dict[str, Any] = field(default_factory=dict)
    status: int | None = None
    detail: str = ""

    def __post_init__(self) -> None:
        if self.status is not None:
            self.details.setdefault("status", self.status)
        if self.detail:
            self.details.setdefault("detail", self.detail)
        super().__post_init__()


@dataclass
class StoreAccessFailure(DocAssistError):
    """Raised when a document or comment store call fails."""

    error_code: str = field(default=ErrorCode.STORE_ACCESS_FAILED)
    message: str = field(default="Document store request failed")
    details: dict[str, Any] = field(default_factory=dict)
    operation: str = ""

    def __post_init__(self) -> None:
        if self.operation:
            self.details.setdefault("operation", self.operation)
        super().__post_init__()
