"""Exception hierarchy shared by repositories, services and routes."""
from typing import Any, Optional


class BookStudioError(Exception):
    """Base exception for all book studio errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class NotFoundError(BookStudioError):
    """A referenced book or chapter does not exist."""

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} not found", {"id": entity_id})
        self.entity = entity
        self.entity_id = entity_id


class ProviderError(BookStudioError):
    """The generation provider call failed (network, auth, rate limit, bad body)."""


class ProviderResponseError(ProviderError):
    """The provider answered, but not in a shape we can use."""

    def __init__(self, message: str = "Unexpected provider response", raw_response: str = ""):
        details = {"raw_response": raw_response[:200]} if raw_response else {}
        super().__init__(message, details)
        self.raw_response = raw_response
