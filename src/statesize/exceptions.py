"""Custom exceptions for statesize with detailed error context."""

from __future__ import annotations

from typing import Any


class StateSizeError(Exception):
    """Base exception for all statesize errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        """
        Initialize the exception with a message and optional context.

        Args:
            message: The error message.
            context: Additional context information for debugging.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return a formatted error message with context."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class MeasurementFailure(StateSizeError):
    """Raised when the size primitive fails on a container mid-measurement.

    The container has already been restored by the time this is raised.
    """

    def __init__(self, container_label: str, original_error: Exception | None = None) -> None:
        """
        Initialize measurement failure.

        Args:
            container_label: Identity label of the container being measured.
            original_error: The exception raised by the size primitive.
        """
        message = f"Failed to measure serialized size of {container_label}"
        context = {"container": container_label}
        if original_error:
            context["original_error"] = str(original_error)
            message += f" - {original_error}"

        super().__init__(message, context)
        self.container_label = container_label
        self.original_error = original_error


class UnsupportedValue(StateSizeError):
    """Raised when an entry cannot be removed from or put back into a container."""

    def __init__(
        self,
        key: Any = None,
        operation: str = "remove",
        original_error: Exception | None = None,
        message: str | None = None,
    ) -> None:
        """
        Initialize unsupported value error.

        Args:
            key: The key whose entry could not be round-tripped.
            operation: Which step failed ("remove" or "restore").
            original_error: The original exception that caused the failure.
            message: Custom error message.
        """
        if message is None:
            message = f"Cannot {operation} entry {key!r}"

        context: dict[str, Any] = {"operation": operation}
        if key is not None:
            context["key"] = repr(key)
        if original_error:
            context["original_error"] = str(original_error)

        super().__init__(message, context)
        self.key = key
        self.operation = operation
        self.original_error = original_error


class ConfigurationError(StateSizeError):
    """Raised when there's a configuration issue."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        """
        Initialize configuration error.

        Args:
            message: The error message.
            suggestion: Optional suggestion for fixing the issue.
        """
        if suggestion:
            message = f"{message}. Suggestion: {suggestion}"

        super().__init__(message)
        self.suggestion = suggestion
