"""Structured logging configuration for the Static Site Operator."""

import json
import logging
import os
import sys
from typing import Any

from .utils.context import get_context_dict
from .utils.errors import sanitize_dict

# Credential-bearing fields that must never reach a log line
SECRET_FIELDS = {
    "access_key",
    "secret_key",
    "session_token",
    "aws_access_key_id",
    "aws_secret_access_key",
    "aws_session_token",
    "password",
}

_NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "kubernetes")


def setup_structured_logging() -> None:
    """Configure structured JSON logging.

    LOG_LEVEL sets the operator's level; the AWS SDK and HTTP libraries are
    held at WARNING unless LOG_LEVEL is DEBUG.
    """
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    if level != "DEBUG":
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def _emit(logger: logging.Logger, level: int, log_data: dict[str, Any]) -> None:
    log_data.update(get_context_dict())
    logger.log(level, json.dumps(sanitize_secrets(log_data), default=str))


def log_resource_event(
    logger: logging.Logger,
    controller: str,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log a structured event about a StaticSite custom resource."""
    _emit(logger, level, {
        "controller": controller,
        "resource": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "uid": uid,
        "event": event,
        "reason": reason,
        "message": message,
        **kwargs,
    })


def log_node_event(
    logger: logging.Logger,
    kind: str,
    operation: str,
    result: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log a structured event about one graph node.

    The node name and site domain come from the bound run context.
    """
    _emit(logger, level, {
        "resource": kind,
        "operation": operation,
        "result": result,
        "message": message,
        **kwargs,
    })


def sanitize_secrets(log_data: dict[str, Any]) -> dict[str, Any]:
    """Redact secret fields and credential-looking values, including nested ones."""
    return sanitize_dict(log_data, SECRET_FIELDS)
