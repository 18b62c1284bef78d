"""Exception hierarchy for the alert processor.

Every error raised on purpose by the service inherits from
``AlertProcessorException`` so the API layer can translate it into a JSON
body with a stable code.

Error codes follow pattern: [CATEGORY][NUMBER]
- ALR: Alert submission / retrieval errors (001-099)
- SYS: Store, configuration and infrastructure errors (400-499)
"""

from __future__ import annotations

from typing import Any


class AlertProcessorException(Exception):
    """Base exception for all alert processor errors."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception with message and metadata.

        Args:
            message: Human readable error message
            code: Unique error code (e.g., "ALR001")
            status_code: HTTP status code (default: 400 Bad Request)
            details: Optional additional context
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


# ============================================================================
# ALERT ERRORS (ALR001-099)
# ============================================================================

class AlertError(AlertProcessorException):
    """Base class for alert submission and lookup errors."""
    pass


class AlertValidationError(AlertError):
    """Inbound draft is missing a required field."""

    def __init__(self, field: str = "sourceType"):
        super().__init__(
            message=f"Invalid alert payload. Required: {field}.",
            code="ALR001",
            status_code=400,
            details={"field": field},
        )


class AlertNotFoundError(AlertError):
    """No alert exists with the requested identifier."""

    def __init__(self, alert_id: str | None = None):
        message = "Alert not found" if not alert_id else f"Alert {alert_id} not found"
        super().__init__(
            message=message,
            code="ALR002",
            status_code=404,
            details={"alert_id": alert_id} if alert_id else {},
        )


# ============================================================================
# SYSTEM ERRORS (SYS400-499)
# ============================================================================

class AlertSystemError(AlertProcessorException):
    """Base class for store/infrastructure errors."""
    pass


class AlertPersistenceError(AlertSystemError):
    """The alert transaction failed and was rolled back."""

    def __init__(self, alert_id: str | None = None):
        super().__init__(
            message="Database error storing alert",
            code="SYS400",
            status_code=500,
            details={"alert_id": alert_id},
        )


class ConfigurationError(AlertSystemError):
    """Rule configuration is missing or malformed."""

    def __init__(self, parameter: str, reason: str | None = None):
        message = f"Configuration error: {parameter} is not configured properly"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            message=message,
            code="SYS401",
            status_code=500,
            details={"parameter": parameter, "reason": reason},
        )
