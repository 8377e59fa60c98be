"""
Error taxonomy for ContractMerge.

Only ConfigurationError and NoUsableInput are meant to reach callers of
classify/merge. Everything else is absorbed into a fallback result.
"""

from typing import NamedTuple


class ContractMergeError(Exception):
    """Base class for all ContractMerge errors."""


class ConfigurationError(ContractMergeError):
    """Missing or placeholder service credential / prompt configuration."""


class TransportError(ContractMergeError):
    """Network failure, timeout, non-success HTTP status or unreadable body."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RetriesExhausted(ContractMergeError):
    """The service kept truncating output past the continuation budget."""

    def __init__(self, max_retries: int, accumulated_text: str = ""):
        super().__init__(f"Maximum retry attempts ({max_retries}) reached for continuation loop")
        self.max_retries = max_retries
        self.accumulated_text = accumulated_text


class UnexpectedResponseStatus(ContractMergeError):
    """The service reported a status the continuation loop does not handle."""

    def __init__(self, status: str | None, reason: str | None = None):
        detail = f"status={status!r}"
        if reason:
            detail += f", reason={reason!r}"
        super().__init__(f"Unexpected response status ({detail})")
        self.status = status
        self.reason = reason


class ValidationFailure(ContractMergeError):
    """Well-formed JSON that is missing fields required for its shape."""


class NoUsableInput(ContractMergeError):
    """Merge requested but no document has any extracted text."""


class ParseFailure(NamedTuple):
    """Returned (never raised) when raw text cannot be decoded even after repair."""
    raw_text: str
    reason: str
