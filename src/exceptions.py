"""Exception hierarchy for the conversation Q&A service."""

from __future__ import annotations

from typing import Any


class ConversationQAError(Exception):
    """Base exception for all service errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class NotFoundError(ConversationQAError):
    """Raised when a transcript or folder is missing or not owned by the caller."""

    def __init__(self, resource: str, resource_id: str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found", {"id": resource_id})


class VectorStoreNotConfiguredError(ConversationQAError):
    """Raised by vector operations when no Qdrant URL is configured."""

    def __init__(self) -> None:
        super().__init__("Vector store not configured")
