"""Domain errors raised by services and mapped to HTTP responses in main."""

from __future__ import annotations

from typing import Optional


class Unauthorized(Exception):
    """No valid principal is attached to the request."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class InsufficientCredits(Exception):
    """A debit would drive the balance below zero."""

    def __init__(self, required: int, available: int):
        self.required = int(required)
        self.available = int(available)
        super().__init__(f"Insufficient credits. Required: {self.required}, available: {self.available}.")


class StorageUnavailable(Exception):
    """The relational store failed or timed out."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        super().__init__(f"Storage unavailable during {operation}")


class UpstreamProviderError(Exception):
    """A third-party provider call failed."""

    def __init__(self, provider: str, detail: str):
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider}: {detail}")


class SiteNotFound(Exception):
    """The site does not exist or is not owned by the caller."""

    def __init__(self, site_id: str):
        self.site_id = site_id
        super().__init__("Site not found or access denied")
