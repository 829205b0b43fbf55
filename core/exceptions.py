"""
Custom Exception Classes for the Bubble Map API.

This module defines the exceptions raised by the bubble lifecycle engine, the
suggestion board and the persistence layer. Every exception carries a
machine-readable `error_code` that clients match on (for example to tell an
"already voted" rejection apart from a self-vote), and an HTTP `status_code`
used at the request boundary.

Key Components:
- `BubbleMapException`: The base class. Holds a message, an error code and an
  optional details dictionary.
- Business-rule errors: `ValidationError`, `NotFoundError`, `ForbiddenError`
  and `DuplicateVoteError`.
- Infrastructure errors: `StorageError` for persistence I/O failures and
  `SourceUnavailableError` for event sources that cannot produce candidates.
"""

from typing import Optional, Dict, Any


class BubbleMapException(Exception):
    """Base exception class for Bubble Map API"""

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: str = "BUBBLE_MAP_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(BubbleMapException):
    """Raised when required input is missing or malformed"""

    status_code = 400

    def __init__(
        self, field: str, value: Any, reason: str, error_code: str = "VALIDATION_ERROR"
    ):
        super().__init__(
            f"Validation failed for field '{field}': {reason}",
            error_code,
            {"field": field, "value": str(value), "reason": reason},
        )


class NotFoundError(BubbleMapException):
    """Raised when a referenced entity does not exist"""

    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            f"{entity.capitalize()} not found: {entity_id}",
            "NOT_FOUND",
            {"entity": entity, "id": entity_id},
        )


class ForbiddenError(BubbleMapException):
    """Raised when a creator tries to vote on their own bubble"""

    status_code = 403

    def __init__(self, bubble_id: str):
        super().__init__(
            "Cannot vote on your own bubble",
            "SELF_VOTE",
            {"bubble_id": bubble_id},
        )


class DuplicateVoteError(BubbleMapException):
    """Raised when a voter repeats a vote in the same direction"""

    status_code = 400

    def __init__(self, bubble_id: str, vote: int):
        super().__init__(
            "Already voted",
            "DUPLICATE_VOTE",
            {"bubble_id": bubble_id, "current_vote": vote},
        )


class StorageError(BubbleMapException):
    """Raised when the persistent store cannot complete an operation"""

    status_code = 500

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"Storage operation '{operation}' failed: {reason}",
            "STORAGE_ERROR",
            {"operation": operation, "reason": reason},
        )


class SourceUnavailableError(BubbleMapException):
    """Raised when an event source cannot produce candidates"""

    status_code = 503

    def __init__(self, source: str, reason: str):
        super().__init__(
            f"Event source '{source}' is unavailable: {reason}",
            "SOURCE_UNAVAILABLE",
            {"source": source, "reason": reason},
        )

