"""
Exception hierarchy and error handling utilities for imagelink.

Provides:
- Custom exception classes with error codes
- Error categorization (retryable, fatal, timeout, ...)
- Safe error message formatting (no sensitive data leak)
"""

from __future__ import annotations

import asyncio
import json
import re
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    RECOVERABLE = "recoverable"
    RETRYABLE = "retryable"
    FATAL = "fatal"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"


class ImageLinkError(Exception):
    """Base exception for all imagelink errors."""

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


class NotConnectedError(ImageLinkError):
    """Raised when a call is attempted without an open link."""

    def __init__(self, operation: str | None = None):
        message = "Not connected"
        if operation:
            message += f" (operation '{operation}')"
        super().__init__(
            message,
            code="NOT_CONNECTED",
            category=ErrorCategory.RETRYABLE,
            details={"operation": operation} if operation else {},
        )


class TransportError(ImageLinkError):
    """Connection-level failure: refused connect, failed send, unexpected close."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(
            message,
            code="TRANSPORT_ERROR",
            category=ErrorCategory.RETRYABLE,
            details={"operation": operation} if operation else {},
        )


class RequestTimeoutError(ImageLinkError):
    """A call received no matching reply within its timeout window."""

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(
            f"Request timeout: {operation} (no reply after {timeout_seconds}s)",
            code="TIMEOUT",
            category=ErrorCategory.TIMEOUT,
            details={"operation": operation, "timeout_seconds": timeout_seconds},
        )
        self.operation = operation
        self.timeout_seconds = timeout_seconds


class ProtocolError(ImageLinkError):
    """Inbound message could not be parsed into a reply."""

    def __init__(self, message: str):
        super().__init__(message, code="PROTOCOL_ERROR", category=ErrorCategory.VALIDATION)


class ConstructionError(ImageLinkError):
    """A scene object could not be created or rediscovered on the host."""

    def __init__(self, name: str, message: str):
        super().__init__(
            f"Failed to build '{name}': {message}",
            code="CONSTRUCTION_ERROR",
            category=ErrorCategory.RECOVERABLE,
            details={"name": name},
        )
        self.name = name


_SENSITIVE_PATTERNS = [
    re.compile(r"(api[_-]?key|token|secret|password|auth)[=:]\s*['\"]?([^\s'\"]+)['\"]?", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove sensitive information from error messages."""
    sanitized = message
    for pattern in _SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized


def classify_exception(exc: Exception) -> tuple[str, ErrorCategory, bool]:
    """
    Classify an exception and return (error_code, category, should_retry).

    Returns:
        Tuple of (error_code, category, should_retry)
    """
    exc_str = str(exc).lower()

    if isinstance(exc, ImageLinkError):
        return exc.code, exc.category, exc.category in (ErrorCategory.RETRYABLE, ErrorCategory.TIMEOUT)

    if isinstance(exc, FileNotFoundError):
        return "FILE_NOT_FOUND", ErrorCategory.NOT_FOUND, False

    if isinstance(exc, asyncio.TimeoutError):
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    if isinstance(exc, ConnectionError):
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True

    if isinstance(exc, json.JSONDecodeError):
        return "JSON_PARSE_ERROR", ErrorCategory.VALIDATION, False

    if isinstance(exc, (ValueError, KeyError, TypeError)):
        return "INVALID_VALUE", ErrorCategory.VALIDATION, False

    if "timeout" in exc_str or "timed out" in exc_str:
        return "TIMEOUT", ErrorCategory.TIMEOUT, True

    if "connection" in exc_str or "network" in exc_str:
        return "CONNECTION_ERROR", ErrorCategory.RETRYABLE, True

    return "INTERNAL_ERROR", ErrorCategory.FATAL, False


def describe_exception(exc: Exception) -> str:
    """One-line, log-safe description of an exception."""
    code, category, _ = classify_exception(exc)
    if isinstance(exc, ImageLinkError):
        message = exc.message
    else:
        message = sanitize_error_message(str(exc)) or exc.__class__.__name__
    return f"[{code}] ({category.value}) {message}"
