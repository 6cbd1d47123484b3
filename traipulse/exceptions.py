"""
Exception classes for the TraiPulse engine.

Only two conditions ever leave the engine as exceptions: malformed model
output (PulseParsingError) and a failing cooldown store backend
(StateStoreError, caught and logged by the policy engine).
"""

from typing import Optional


class TraiPulseError(Exception):
    """Base exception for TraiPulse errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[dict] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Serializable form for logs and callers."""
        return {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
            **({"details": self.details} if self.details else {}),
        }


class PulseParsingError(TraiPulseError):
    """Raised when generated pulse content is missing or has an invalid field."""

    def __init__(self, reason: str, field: Optional[str] = None, details: Optional[dict] = None):
        full_details = details or {}
        if field:
            full_details["field"] = field
        self.reason = reason
        self.field = field
        super().__init__(
            message=f"Invalid pulse content: {reason}",
            error_code="PULSE_PARSE_FAILED",
            details=full_details,
        )


class StateStoreError(TraiPulseError):
    """Raised when the key/value store behind the policy cooldown fails."""

    def __init__(self, operation: str, key: str, message: str, details: Optional[dict] = None):
        full_details = details or {}
        full_details["operation"] = operation
        full_details["key"] = key
        super().__init__(
            message=f"State store {operation} failed for {key}: {message}",
            error_code="STATE_STORE_UNAVAILABLE",
            details=full_details,
        )
