"""Core modules for metricindex - centralized definitions and utilities."""

from metricindex.core.errors import (
    BackendTimeoutError,
    BackendUnavailableError,
    ConfigurationError,
    DiscoveryError,
    ExitCode,
    IndexingError,
    MalformedIndexedPathError,
    MalformedMetricNameError,
    MalformedQueryError,
    MetricIndexError,
    ResultTruncatedError,
    ValidationError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "MetricIndexError",
    "ConfigurationError",
    "DiscoveryError",
    "BackendUnavailableError",
    "BackendTimeoutError",
    "IndexingError",
    "ResultTruncatedError",
    "ValidationError",
    "MalformedQueryError",
    "MalformedMetricNameError",
    "MalformedIndexedPathError",
    "main_with_error_handling",
    "format_error_message",
]
