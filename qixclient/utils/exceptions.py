"""
Exception hierarchy and error handling utilities for qixclient.

Provides:
- Custom exception classes with error codes
- Error categorization (validation, network, timeout, engine)
- Safe error message formatting (no credential leak into logs)
"""

from __future__ import annotations

import asyncio
import json
import re
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    NETWORK = "network"
    TIMEOUT = "timeout"
    PROTOCOL = "protocol"
    ENGINE = "engine"
    FATAL = "fatal"


class QixClientError(Exception):
    """Base exception for all qixclient errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.FATAL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ValidationError(QixClientError):
    """Malformed caller input (empty document id, bad URL, ...)."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        *,
        code: str = "VALIDATION_ERROR",
        category: ErrorCategory = ErrorCategory.VALIDATION,
    ):
        details = {"field": field} if field else {}
        super().__init__(message, code=code, category=category, details=details)


class ConfigurationError(ValidationError):
    """Missing or invalid configuration (API key, tenant URL)."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(
            message,
            field,
            code="CONFIGURATION_ERROR",
            category=ErrorCategory.CONFIGURATION,
        )


class NetworkError(QixClientError):
    """Connection absent, closed, or failed in transport."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="NETWORK_ERROR", category=ErrorCategory.NETWORK, details=details)


class TimeoutError(QixClientError):
    """No reply arrived before the call deadline."""

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(
            f"Operation '{operation}' timed out after {timeout_seconds}s",
            code="TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"operation": operation, "timeout_seconds": timeout_seconds},
        )


class EncodingError(QixClientError):
    """A call parameter could not be represented as JSON."""

    def __init__(self, method: str, reason: str):
        super().__init__(
            f"Cannot encode params for '{method}': {reason}",
            code="ENCODING_ERROR",
            category=ErrorCategory.PROTOCOL,
            details={"method": method},
        )


class ProtocolError(QixClientError):
    """A reply addressed to a call could not be decoded."""

    def __init__(self, method: str, kind: str):
        super().__init__(
            f"Undecodable reply to '{method}': {kind}",
            code=kind.upper(),
            category=ErrorCategory.PROTOCOL,
            details={"method": method},
        )
        self.kind = kind


class ExtractionError(QixClientError):
    """An expected shape was absent from an engine result."""

    def __init__(self, shape: str, method: str | None = None):
        message = f"No {shape} found in result"
        if method:
            message += f" of '{method}'"
        super().__init__(
            message,
            code="EXTRACTION_ERROR",
            category=ErrorCategory.PROTOCOL,
            details={"shape": shape, "method": method},
        )


class EngineError(QixClientError):
    """The engine understood the call and rejected it."""

    def __init__(
        self,
        method: str,
        rpc_code: int | None,
        rpc_message: str,
        *,
        parameter: str | None = None,
        request_id: int | None = None,
    ):
        super().__init__(
            f"Engine rejected '{method}': {rpc_message} (code {rpc_code})",
            code="ENGINE_ERROR",
            category=ErrorCategory.ENGINE,
            details={
                "method": method,
                "rpc_code": rpc_code,
                "parameter": parameter,
                "request_id": request_id,
            },
        )
        self.rpc_code = rpc_code
        self.rpc_message = rpc_message
        self.parameter = parameter
        self.request_id = request_id


_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|token|secret|password|auth)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"eyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+"),
    re.compile(r"[a-zA-Z0-9]{40,}"),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove sensitive information from error messages."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def classify_exception(exc: BaseException) -> tuple[str, ErrorCategory, bool]:
    """
    Classify an exception and return (error_code, category, should_retry).

    Only network failures and timeouts are worth retrying; this layer never
    retries on its own, the flag is advice for callers.
    """
    if isinstance(exc, QixClientError):
        return exc.code, exc.category, exc.category in (ErrorCategory.NETWORK, ErrorCategory.TIMEOUT)

    if isinstance(exc, asyncio.TimeoutError):
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    if isinstance(exc, (ConnectionError, OSError)):
        return "NETWORK_ERROR", ErrorCategory.NETWORK, True

    if isinstance(exc, json.JSONDecodeError):
        return "INVALID_JSON", ErrorCategory.PROTOCOL, False

    if isinstance(exc, (ValueError, TypeError, KeyError)):
        return "VALIDATION_ERROR", ErrorCategory.VALIDATION, False

    return "INTERNAL_ERROR", ErrorCategory.FATAL, False
