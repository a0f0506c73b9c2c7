"""
Error types for the retryable tracker.

Every failure carries a stable integer code so the report layer can group
unresolved pairs without string-matching on messages.
"""

from enum import IntEnum
from typing import Any, Mapping


class ErrorCode(IntEnum):
    """Stable error codes for tracker exceptions."""
    GENERIC = 1000
    MALFORMED_PAYLOAD = 1001
    CORRELATION_MISMATCH = 1002
    LOOKUP_FAILURE = 1003
    DERIVATION_INPUT_INCOMPLETE = 1004


class RetryableTrackerError(Exception):
    """Base class for all tracker errors."""

    code: ErrorCode = ErrorCode.GENERIC

    def __init__(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        """
        Initialize the error.

        Args:
            message: Human-readable description
            context: Optional small dict of structured fields (sequence number, hashes)
        """
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context) if context else {}

    def __str__(self) -> str:
        tail = f" context={self.context}" if self.context else ""
        return f"[{int(self.code)}] {self.message}{tail}"

    def to_dict(self) -> dict[str, Any]:
        """Structured view for logs and JSON output."""
        return {
            "code": int(self.code),
            "error": type(self).__name__,
            "message": self.message,
            "context": self.context,
        }


class MalformedPayload(RetryableTrackerError):
    """The inbox message bytes cannot be parsed as a retryable submission."""
    code = ErrorCode.MALFORMED_PAYLOAD


class CorrelationMismatch(RetryableTrackerError):
    """Zero or several MessageDelivered events share a delivery's sequence number."""
    code = ErrorCode.CORRELATION_MISMATCH


class LookupFailure(RetryableTrackerError):
    """An RPC call failed (as opposed to returning nothing)."""
    code = ErrorCode.LOOKUP_FAILURE


class DerivationInputIncomplete(RetryableTrackerError):
    """A field required by the hash derivation is missing. Indicates a logic defect."""
    code = ErrorCode.DERIVATION_INPUT_INCOMPLETE
