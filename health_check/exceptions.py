"""
Health Check - Exceptions.

============================================================
CUSTOM EXCEPTIONS
============================================================

All exceptions for the health check module:
- HealthCheckError: Base exception
- UnknownIndicatorError: Indicator type outside the closed set
- ConfigurationError: Invalid configuration
- InvalidTelemetryError: Telemetry payload failed validation
- StateStoreError: Hysteresis store failure

============================================================
FAILURE PHILOSOPHY
============================================================

The evaluation engine never raises on bad-but-plausible input;
it degrades to a valid low-confidence result instead.

Only UnknownIndicatorError is raised from inside the engine,
and it signals a programming error that must not be caught
and papered over.

============================================================
"""

from typing import Any, Dict, List, Optional


class HealthCheckError(Exception):
    """
    Base exception for health check errors.

    All health check exceptions inherit from this class.
    """

    def __init__(
        self,
        message: str,
        target_key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize exception.

        Args:
            message: Error message
            target_key: Key of the affected target ("type:id")
            details: Additional error details
        """
        self.message = message
        self.target_key = target_key
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.target_key:
            return f"[{self.target_key}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "target_key": self.target_key,
            "details": self.details,
        }


class UnknownIndicatorError(HealthCheckError):
    """
    Raised when an indicator type outside the closed set reaches the evaluator.

    This is a programming error and is unrecoverable.
    """

    def __init__(self, indicator_type: Any) -> None:
        super().__init__(
            message=f"Unknown indicator type: {indicator_type!r}",
            details={"indicator_type": str(indicator_type)},
        )
        self.indicator_type = indicator_type


class ConfigurationError(HealthCheckError):
    """
    Raised when configuration is invalid.

    Should be caught at startup and fixed before evaluating.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_value: Optional[str] = None,
        actual_value: Optional[str] = None,
    ) -> None:
        details = {}
        if config_key:
            details["config_key"] = config_key
        if expected_value:
            details["expected"] = expected_value
        if actual_value:
            details["actual"] = actual_value

        super().__init__(message=message, details=details)
        self.config_key = config_key


class InvalidTelemetryError(HealthCheckError):
    """
    Raised when an external telemetry payload fails validation.

    Raised at the wire boundary only, never by the engine.
    """

    def __init__(
        self,
        errors: List[Dict[str, Any]],
        target_key: Optional[str] = None,
    ) -> None:
        fields = sorted({".".join(str(p) for p in e.get("loc", ())) for e in errors})
        message = "Invalid telemetry payload"
        if fields:
            message += f": {', '.join(f for f in fields if f) or 'payload'}"

        super().__init__(
            message=message,
            target_key=target_key,
            details={"errors": errors},
        )
        self.errors = errors


class StateStoreError(HealthCheckError):
    """
    Raised when the hysteresis store cannot be read or written.

    The evaluation itself is not affected; the caller decides
    whether to retry.
    """

    def __init__(
        self,
        target_key: str,
        operation: str,
        original_exception: Optional[Exception] = None,
    ) -> None:
        details = {"operation": operation}
        if original_exception:
            details["original_exception"] = str(original_exception)
            details["exception_type"] = type(original_exception).__name__

        super().__init__(
            message=f"Hysteresis store {operation} failed",
            target_key=target_key,
            details=details,
        )
        self.operation = operation
        self.original_exception = original_exception
