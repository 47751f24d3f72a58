"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_CERTIFICATE_PENDING,
    EVENT_REASON_POLICY_REBOUND,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_SITE_DESTROYED,
    EVENT_REASON_SITE_READY,
    EVENT_REASON_VALIDATE_FAILED,
    EVENT_REASON_VALIDATE_SUCCEEDED,
)


def emit_event(
    meta: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        meta: Resource metadata
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        meta,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(meta: dict[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(meta, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(meta: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(meta, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_validate_succeeded(meta: dict[str, Any]) -> None:
    """Emit validation succeeded event."""
    emit_event(meta, EVENT_REASON_VALIDATE_SUCCEEDED, "Validation succeeded")


def emit_validate_failed(meta: dict[str, Any], message: str) -> None:
    """Emit validation failed event."""
    emit_event(meta, EVENT_REASON_VALIDATE_FAILED, message, type_="Warning")


def emit_site_ready(meta: dict[str, Any], site_url: str) -> None:
    """Emit site ready event."""
    emit_event(meta, EVENT_REASON_SITE_READY, f"Site {site_url} is ready")


def emit_certificate_pending(meta: dict[str, Any], domain: str) -> None:
    """Emit certificate pending event."""
    emit_event(meta, EVENT_REASON_CERTIFICATE_PENDING, f"Waiting for certificate for {domain} to be issued")


def emit_policy_rebound(meta: dict[str, Any], bucket_name: str) -> None:
    """Emit policy rebound event."""
    emit_event(meta, EVENT_REASON_POLICY_REBOUND, f"Bucket policy for {bucket_name} rebound to the active distribution")


def emit_site_destroyed(meta: dict[str, Any], domain: str) -> None:
    """Emit site destroyed event."""
    emit_event(meta, EVENT_REASON_SITE_DESTROYED, f"Site {domain} destroyed")
