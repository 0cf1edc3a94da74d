"""Unified exception hierarchy for callboard."""

from __future__ import annotations


class CallboardError(Exception):
    """Base exception for all callboard errors."""


class ValidationError(CallboardError):
    """Malformed input. Carries every violated rule, not just the first."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Validation failed")


class NotFoundError(CallboardError):
    """Referenced entity is absent or not owned by the caller."""


class ConflictError(CallboardError):
    """Uniqueness violation, e.g. a duplicate phone number for one user."""


class StoreError(CallboardError):
    """Generic persistence failure."""


class CredentialMissing(CallboardError):
    """No API key configured for the calling user."""


class UpstreamError(CallboardError):
    """An external API returned a non-success status."""

    def __init__(self, status_code: int, body: str = "", service: str = "upstream"):
        self.status_code = status_code
        self.body = body
        self.service = service
        super().__init__(f"{service} API error: {status_code} {body}".rstrip())


class UpstreamFormatError(CallboardError):
    """An external API response could not be parsed into the expected shape."""
