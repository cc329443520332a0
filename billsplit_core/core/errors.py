"""Custom error types for cache, consent and memory operations."""

from typing import Optional, Dict, Any
from enum import Enum
from datetime import datetime, timezone


class ErrorCategory(Enum):
    """Categories of errors for better handling."""
    CONSENT = "consent"
    NOT_FOUND = "not_found"
    BACKEND = "backend"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class CoreError(Exception):
    """Base exception for core operations."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False
    ):
        """Initialize core error."""
        super().__init__(message)
        self.message = message
        self.category = category
        self.details = details or {}
        self.recoverable = recoverable
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/response."""
        return {
            "error": self.message,
            "category": self.category.value,
            "details": self.details,
            "recoverable": self.recoverable,
            "timestamp": self.timestamp.isoformat(),
        }


class ConsentDenied(CoreError):
    """A write or read was blocked because the user has not granted consent."""

    def __init__(self, user_id: str, purpose: str):
        super().__init__(
            message=f"Consent '{purpose}' not granted",
            category=ErrorCategory.CONSENT,
            details={"user_id": user_id, "purpose": purpose},
            recoverable=False
        )
        self.user_id = user_id
        self.purpose = purpose


class NotFound(CoreError):
    """Record is absent or expired.

    The two cases are deliberately reported the same way.
    """

    def __init__(self, record_id: str):
        super().__init__(
            message="Record not found",
            category=ErrorCategory.NOT_FOUND,
            details={"record_id": record_id},
            recoverable=False
        )
        self.record_id = record_id


class BackendUnavailable(CoreError):
    """Key-value backend could not be reached or rejected the operation."""

    def __init__(self, message: str, operation: Optional[str] = None, key: Optional[str] = None):
        details = {}
        if operation:
            details["operation"] = operation
        if key:
            details["key"] = key

        super().__init__(
            message=message,
            category=ErrorCategory.BACKEND,
            details=details,
            recoverable=True  # Backend outages are usually temporary
        )


class ValidationError(CoreError):
    """Malformed input, rejected before any I/O."""

    def __init__(self, message: str, field: Optional[str] = None, value: Optional[Any] = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            details=details,
            recoverable=False  # Validation errors require fixing input
        )
