"""
Centralized logging utilities for the ZhipuAI client.

This module provides decorators and helpers that standardize logging across
the client, so every public call reports start, success and failure the
same way.

Features:
- Structured logging with contextual information
- Error classification for log records
- Performance timing
- Loggers that carry request context across related operations
"""

from __future__ import annotations

import functools
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import structlog

from .exceptions import (
    ConfigurationError,
    HTTPStatusError,
    InvalidCredentialFormatError,
    RequestCancelledError,
    ResponseDecodeError,
    SerializationError,
    SigningError,
    StreamingError,
    TransportError,
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Type variables for generic decorators
P = ParamSpec("P")
T = TypeVar("T")
AsyncCallable = Callable[P, Awaitable[T]]

logger = structlog.get_logger(__name__)


class LLMErrorHandler:
    """Error classification for structured log records."""

    @staticmethod
    def classify_error(error: BaseException) -> str:
        """
        Classify an error into a log category.

        Args:
            error: The exception to classify

        Returns:
            Error category name
        """
        if isinstance(error, RequestCancelledError | TimeoutError):
            return "timeout_error"
        if isinstance(error, HTTPStatusError):
            return "http_status_error"
        if isinstance(error, StreamingError):
            return "stream_error"
        if isinstance(error, InvalidCredentialFormatError | SigningError):
            return "credential_error"
        if isinstance(error, SerializationError | ResponseDecodeError):
            return "serialization_error"
        if isinstance(error, TransportError | ConnectionError | OSError):
            return "connection_error"
        if isinstance(error, ConfigurationError):
            return "configuration_error"
        if isinstance(error, ValueError | TypeError):
            return "parameter_error"
        return "unknown_error"


def _failure_log_data(
    error: BaseException, start_time: float | None
) -> dict[str, Any]:
    error_log_data: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_category": LLMErrorHandler.classify_error(error),
        "error_message": str(error),
    }
    status_code = getattr(error, "status_code", None)
    if status_code is not None:
        error_log_data["status_code"] = status_code
    if start_time is not None:
        error_log_data["duration_ms"] = round(
            (time.perf_counter() - start_time) * 1000, 2
        )
    return error_log_data


def log_operation(
    operation: str,
    *,
    log_timing: bool = True,
    context: dict[str, Any] | None = None,
) -> Callable[[AsyncCallable[P, T]], AsyncCallable[P, T]]:
    """
    Decorator for logging async operations with structured context.

    Arguments are never logged: they may carry credentials.

    Args:
        operation: Description of the operation being performed
        log_timing: Whether to log execution timing
        context: Additional context to include in logs

    Returns:
        Decorated function with logging
    """
    def decorator(func: AsyncCallable[P, T]) -> AsyncCallable[P, T]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            operation_logger = logger.bind(
                operation=operation,
                function=func.__name__,
                **(context or {}),
            )
            operation_logger.debug("Operation started")

            start_time = time.perf_counter() if log_timing else None

            try:
                result = await func(*args, **kwargs)
            except BaseException as e:
                operation_logger.error(
                    "Operation failed", **_failure_log_data(e, start_time)
                )
                raise

            end_log_data: dict[str, Any] = {}
            if start_time is not None:
                duration = round((time.perf_counter() - start_time) * 1000, 2)
                end_log_data["duration_ms"] = duration

            operation_logger.info("Operation completed successfully", **end_log_data)
            return result

        return wrapper
    return decorator


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
    log_timing: bool = True,
):
    """
    Async context manager for operation logging.

    Args:
        operation: Description of the operation
        context: Additional context for logging
        log_timing: Whether to log operation timing

    Yields:
        Bound logger for the operation
    """
    operation_logger = logger.bind(
        operation=operation,
        **(context or {}),
    )

    operation_logger.debug("Operation started")
    start_time = time.perf_counter() if log_timing else None

    try:
        yield operation_logger
    except BaseException as e:
        operation_logger.error("Operation failed", **_failure_log_data(e, start_time))
        raise

    log_data: dict[str, Any] = {}
    if start_time is not None:
        duration = round((time.perf_counter() - start_time) * 1000, 2)
        log_data["duration_ms"] = duration

    operation_logger.debug("Operation completed successfully", **log_data)


class ContextualLogger:
    """Logger that maintains context across related operations."""

    def __init__(self, base_context: dict[str, Any] | None = None):
        self.base_context = base_context or {}
        self._logger = logger.bind(**self.base_context)

    def bind(self, **context: Any) -> ContextualLogger:
        """Create a new logger with additional context."""
        merged_context = {**self.base_context, **context}
        return ContextualLogger(merged_context)

    def info(self, message: str, **context: Any) -> None:
        """Log info message with context."""
        self._logger.info(message, **context)

    def warning(self, message: str, **context: Any) -> None:
        """Log warning message with context."""
        self._logger.warning(message, **context)

    def error(self, message: str, **context: Any) -> None:
        """Log error message with context."""
        self._logger.error(message, **context)

    def debug(self, message: str, **context: Any) -> None:
        """Log debug message with context."""
        self._logger.debug(message, **context)
