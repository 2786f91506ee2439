"""
Unified error handling for metricindex.

Every failure raised by the discovery layer derives from MetricIndexError,
so callers can tell "the query matched nothing" (an empty result) apart
from "the query could not be answered" (an exception).

Exit Codes:
- 0: Success
- 10: Configuration error
- 11: Discovery backend error (unreachable, timeout, failed batch write, truncated result)
- 12: Validation error (malformed query, metric name or indexed path)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    BACKEND_ERROR = 11
    VALIDATION_ERROR = 12
    UNKNOWN_ERROR = 127


class MetricIndexError(Exception):
    """Base exception for metricindex errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    retryable: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(MetricIndexError):
    """Raised for configuration-related errors."""

    exit_code = ExitCode.CONFIG_ERROR


class DiscoveryError(MetricIndexError):
    """Raised when a discovery backend operation fails."""

    exit_code = ExitCode.BACKEND_ERROR


class BackendUnavailableError(DiscoveryError):
    """Transient backend failure; the caller may retry with backoff."""

    retryable = True


class BackendTimeoutError(BackendUnavailableError):
    """The backend did not answer within the configured timeout."""


class IndexingError(DiscoveryError):
    """A batch write was rejected in whole or in part."""


class ResultTruncatedError(DiscoveryError):
    """The backend capped a result set, so an answer built from it would be wrong."""


class ValidationError(MetricIndexError):
    """Raised for caller or contract errors that must not be retried."""

    exit_code = ExitCode.VALIDATION_ERROR


class MalformedQueryError(ValidationError):
    """The query pattern cannot be parsed."""


class MalformedMetricNameError(ValidationError):
    """A metric name supplied for indexing is not a valid dotted name."""


class MalformedIndexedPathError(ValidationError):
    """An indexed path or its count breaks the backend/tokenizer contract."""


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI main functions that provides unified error handling.

    Args:
        show_traceback: If True, show full traceback for unexpected errors
        log_errors: If True, log errors to structlog

    Exit codes:
        - MetricIndexError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except MetricIndexError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                _print_error(format_error_message(e))
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: MetricIndexError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg


def _print_error(message: str) -> None:
    from metricindex.cli.ux import error as print_error

    print_error(message)
