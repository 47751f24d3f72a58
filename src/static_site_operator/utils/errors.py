"""Error taxonomy and sanitization utilities to prevent information leakage."""

from __future__ import annotations

import re
from typing import Any, Iterable


class StaticSiteError(Exception):
    """Base class for all reconciliation errors."""


class ResourceNotFoundError(StaticSiteError):
    """A referenced resource (e.g. the hosted zone) does not exist. Not retried."""


class TransientProviderError(StaticSiteError):
    """A provider call kept failing with retryable errors until attempts ran out."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class ValidationTimeoutError(StaticSiteError):
    """The certificate was not issued within the allowed window."""

    def __init__(self, message: str, records: Iterable[Any] = ()) -> None:
        self.records = list(records)
        if self.records:
            listed = ", ".join(f"{r.name} {r.type} {r.value}" for r in self.records)
            message = f"{message}; unresolved validation records: {listed}"
        super().__init__(message)


class ConflictError(StaticSiteError):
    """Live state collides with an out-of-band change and must be reviewed."""


class DependencyNotReadyError(StaticSiteError):
    """A node was asked to apply before its hard precondition holds."""


class ReconcileCancelledError(StaticSiteError):
    """The reconciliation run was aborted before completion."""


class GraphCycleError(StaticSiteError):
    """Adding a node would introduce a dependency cycle."""


class GraphOrderingError(StaticSiteError):
    """A required ordering dependency is missing from the resource graph."""


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"access[_\s]?key[_\s]?id[:\s]+([A-Z0-9]{20})",
    r"secret[_\s]?access[_\s]?key[:\s]+([A-Za-z0-9/+=]{40})",
    r"session[_\s]?token[:\s]+([A-Za-z0-9/+=]+)",
    r"arn:aws:iam::\d+:user/([a-zA-Z0-9\-_]+)",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "access_key_id",
    "secret_access_key",
    "session_token",
    "password",
    "secret",
    "credentials",
    "token",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(
            pattern,
            lambda match: match.group(0).replace(match.group(1), "[REDACTED]"),
            sanitized,
            flags=re.IGNORECASE,
        )

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"{field}[:\s]+([^\s,;\)]+)",
            rf"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: Exception) -> str:
    """Sanitize exception message.

    Args:
        error: Exception object

    Returns:
        Sanitized error message
    """
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Sanitize dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional keys to redact (merged with SENSITIVE_FIELDS)

    Returns:
        Sanitized dictionary with sensitive values redacted
    """
    all_sensitive = SENSITIVE_FIELDS | (sensitive_keys or set())
    sanitized: dict[str, Any] = {}

    for key, value in data.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in all_sensitive):
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized
