"""Utility functions for qixclient."""

from qixclient.utils.exceptions import (
    QixClientError,
    ValidationError,
    ConfigurationError,
    NetworkError,
    TimeoutError,
    EncodingError,
    ProtocolError,
    ExtractionError,
    EngineError,
    ErrorCategory,
    classify_exception,
    sanitize_error_message,
)

__all__ = [
    "QixClientError",
    "ValidationError",
    "ConfigurationError",
    "NetworkError",
    "TimeoutError",
    "EncodingError",
    "ProtocolError",
    "ExtractionError",
    "EngineError",
    "ErrorCategory",
    "classify_exception",
    "sanitize_error_message",
]
