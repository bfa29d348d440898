"""Custom exceptions for the TrendPulse engine.

All exceptions inherit from TrendPulseError for easy catching and carry a
context dictionary for structured logging.

Failure classes map onto the engine's error taxonomy:
- input rejection (MentionRejectedError) is local and counted
- transient store failures (StoreError) abandon the pass cleanly
- scheduling failures (PassTimeoutError, LeaseUnavailableError)
- access control (PermissionDeniedError)
"""

from typing import Any


class TrendPulseError(Exception):
    """Base exception for all TrendPulse errors.

    Attributes:
        context: Dictionary with additional error context

    Example:
        >>> try:
        ...     raise TrendPulseError("Something went wrong", context={"event_key": "x"})
        ... except TrendPulseError as e:
        ...     print(f"Error: {e}, Context: {e.context}")
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Initialize TrendPulseError.

        Args:
            message: Error message
            context: Optional dictionary with additional context
        """
        self.context = context or {}
        super().__init__(message)

    def with_context(self, **kwargs: Any) -> "TrendPulseError":
        """Add additional context to the exception.

        Args:
            **kwargs: Key-value pairs to add to context

        Returns:
            Self for method chaining
        """
        self.context.update(kwargs)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization.

        Returns:
            Dictionary with error type, message, and context
        """
        return {
            "error_type": self.__class__.__name__,
            "message": str(self),
            "context": self.context,
        }


# ============================================
# Database / Store Errors
# ============================================


class DatabaseError(TrendPulseError):
    """Base exception for database-related errors."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        operation: str | None = None,
    ) -> None:
        """Initialize DatabaseError.

        Args:
            message: Error message
            context: Additional context
            operation: Database operation that failed (e.g., "insert", "update")
        """
        ctx = context or {}
        if operation:
            ctx["operation"] = operation
        super().__init__(message, context=ctx)


class StoreError(DatabaseError):
    """Transient failure of the trend store.

    A scoring pass that hits this error for a cluster skips that cluster;
    one that hits it while loading its batch is abandoned and recorded as a
    job failure. The engine never retries internally.
    """


class RecordNotFoundError(DatabaseError):
    """Raised when a stored record is not found.

    Attributes:
        model: Name of the record type
        record_id: Identifier that was not found
    """

    def __init__(
        self,
        model: str,
        record_id: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        ctx.update({"model": model, "record_id": record_id})
        super().__init__(f"{model} with id={record_id} not found", context=ctx)
        self.model = model
        self.record_id = record_id


class StaleEventError(DatabaseError):
    """Raised when a trend event was modified by another writer.

    Event writes carry the version they were computed from; a mismatch
    means the write is rejected as a whole.

    Attributes:
        event_key: Key of the conflicting event
        expected_version: Version the writer computed from
        actual_version: Version currently stored (None if absent)
    """

    def __init__(
        self,
        event_key: str,
        expected_version: int,
        actual_version: int | None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        ctx.update(
            {
                "event_key": event_key,
                "expected_version": expected_version,
                "actual_version": actual_version,
            }
        )
        super().__init__(
            f"Trend event '{event_key}' changed concurrently "
            f"(expected version {expected_version}, found {actual_version})",
            context=ctx,
            operation="save_event",
        )
        self.event_key = event_key
        self.expected_version = expected_version
        self.actual_version = actual_version


# ============================================
# Configuration Errors
# ============================================


class ConfigError(TrendPulseError):
    """Base exception for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_path: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize ConfigError.

        Args:
            message: Error message
            config_path: Path to the config file/key
            context: Additional context
        """
        ctx = context or {}
        if config_path:
            ctx["config_path"] = config_path
        super().__init__(message, context=ctx)


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails.

    Supports two usage patterns:
    1. Simple: ConfigValidationError("error message")
    2. Structured: ConfigValidationError(field="name", value="x", reason="invalid")
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        field: str | None = None,
        value: Any = None,
        reason: str | None = None,
        config_path: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}

        self.field = field
        self.value = value
        self.reason = reason

        if field and reason:
            ctx.update({"field": field, "reason": reason})
            if value is not None:
                ctx["value"] = str(value)
            final_message = f"Config validation failed for '{field}': {reason}"
        elif message:
            final_message = message
        else:
            final_message = "Configuration validation failed"

        super().__init__(final_message, config_path=config_path, context=ctx)


class ConfigNotFoundError(ConfigError):
    """Raised when a required configuration file or section is not found.

    Attributes:
        config_key: The configuration key that was not found
    """

    def __init__(
        self,
        config_key: str,
        config_path: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        ctx["config_key"] = config_key
        super().__init__(
            f"Configuration '{config_key}' not found",
            config_path=config_path,
            context=ctx,
        )
        self.config_key = config_key


# ============================================
# Ingest Errors
# ============================================


class MentionRejectedError(TrendPulseError):
    """Raised when a mention record is malformed.

    Rejected mentions never enter any window and are counted by the
    ingest buffer.

    Attributes:
        reason: Short machine-readable rejection reason
    """

    def __init__(
        self,
        reason: str,
        message: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        ctx["reason"] = reason
        super().__init__(message or f"Mention rejected: {reason}", context=ctx)
        self.reason = reason


class TopicLockTimeoutError(TrendPulseError):
    """Raised when the cross-process lock for a topic cannot be taken.

    Attributes:
        topic_key: Topic whose lock timed out
    """

    def __init__(
        self,
        topic_key: str,
        wait_seconds: float | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        ctx["topic_key"] = topic_key
        if wait_seconds is not None:
            ctx["wait_seconds"] = wait_seconds
        super().__init__(f"Lock for topic '{topic_key}' not acquired", context=ctx)
        self.topic_key = topic_key


# ============================================
# Engine Errors
# ============================================


class EngineError(TrendPulseError):
    """Base exception for scoring engine errors."""

    def __init__(
        self,
        message: str,
        job_name: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        if job_name:
            ctx["job_name"] = job_name
        super().__init__(message, context=ctx)


class PassTimeoutError(EngineError):
    """Raised when a scoring pass exceeds its time budget.

    Attributes:
        timeout_seconds: Configured pass timeout
    """

    def __init__(
        self,
        timeout_seconds: float,
        job_name: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        ctx["timeout_seconds"] = timeout_seconds
        super().__init__(
            f"Scoring pass exceeded {timeout_seconds}s and was abandoned",
            job_name=job_name,
            context=ctx,
        )
        self.timeout_seconds = timeout_seconds


class LeaseUnavailableError(EngineError):
    """Raised when a cluster lease is held by another scoring pass.

    Attributes:
        event_key: Cluster whose lease could not be taken
    """

    def __init__(self, event_key: str, context: dict[str, Any] | None = None) -> None:
        ctx = context or {}
        ctx["event_key"] = event_key
        super().__init__(f"Lease for cluster '{event_key}' is held elsewhere", context=ctx)
        self.event_key = event_key


# ============================================
# Access Control Errors
# ============================================


class PermissionDeniedError(TrendPulseError):
    """Raised when a principal performs an operation its role does not allow.

    Attributes:
        principal: Name of the caller
        operation: Operation that was refused
    """

    def __init__(
        self,
        principal: str,
        operation: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        ctx.update({"principal": principal, "operation": operation})
        super().__init__(f"'{principal}' is not allowed to {operation}", context=ctx)
        self.principal = principal
        self.operation = operation
