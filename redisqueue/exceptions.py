"""
Queue Exceptions

Structured exceptions for queue operations. Command failures are raised from
the coroutine that issued them; connection failures travel through the
``error`` event instead.
"""

from typing import Any, Dict, Optional


class QueueException(Exception):
    """Base exception for queue errors.

    Carries a machine-readable ``error_code`` and a ``details`` dict so callers
    can log or inspect failures without parsing messages.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(QueueException, ValueError):
    """Raised when a queue is constructed with invalid arguments."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_value is not None:
            details["config_value"] = str(config_value)

        super().__init__(
            message=message, error_code="QUEUE_CONFIGURATION_ERROR", details=details
        )


class StoreCommandError(QueueException):
    """Raised when a Redis command fails at the transport or server level."""

    def __init__(
        self,
        command: str,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {"command": command}
        if key:
            details["key"] = key
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(
            message=f"Redis command '{command}' failed: {original_error}",
            error_code="QUEUE_COMMAND_ERROR",
            details=details,
        )
        self.command = command
        self.original_error = original_error
        if original_error:
            self.__cause__ = original_error


class QueueConnectionError(QueueException):
    """Transport-level failure on the primary or subscription handle.

    ``code`` mirrors the socket-level failure class: ``ENOTFOUND`` for DNS
    resolution failures, ``ECONNREFUSED``, ``ETIMEDOUT`` or ``ECONNRESET``.
    """

    def __init__(
        self,
        code: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {"code": code}
        if host:
            details["host"] = host
        if port:
            details["port"] = port
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        target = f"{host}:{port}" if host else "redis"
        super().__init__(
            message=f"Connection to {target} failed ({code}): {original_error}",
            error_code="QUEUE_CONNECTION_ERROR",
            details=details,
        )
        self.code = code
        self.host = host
        self.port = port
        self.original_error = original_error
        if original_error:
            self.__cause__ = original_error

    @property
    def retryable(self) -> bool:
        return self.code != "ENOTFOUND"


class ConfirmationTimeoutError(QueueException):
    """Raised when Redis does not confirm a subscribe/unsubscribe in time."""

    def __init__(self, operation: str, timeout_seconds: float, channel: str):
        super().__init__(
            message=f"{operation.capitalize()} timeout after {timeout_seconds:g}s",
            error_code="QUEUE_CONFIRMATION_TIMEOUT",
            details={
                "operation": operation,
                "timeout_seconds": timeout_seconds,
                "channel": channel,
            },
        )
        self.operation = operation
        self.timeout_seconds = timeout_seconds


class NotSubscribedError(QueueException):
    """Raised when unsubscribing from a queue that never subscribed."""

    def __init__(self, channel: str):
        super().__init__(
            message=f"Queue '{channel}' has no subscription to cancel",
            error_code="QUEUE_NOT_SUBSCRIBED",
            details={"channel": channel},
        )
