"""Main entry point for the Static Site Operator."""

from __future__ import annotations

import os
from typing import Any

import kopf

from . import handlers  # noqa: F401
from . import health
from . import logging as structured_logging
from .tracing import initialize_tracing, shutdown_tracing

METRICS_PORT = int(os.getenv("METRICS_PORT", "8080"))
OPERATOR_MAX_WORKERS = int(os.getenv("OPERATOR_MAX_WORKERS", "4"))


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    structured_logging.setup_structured_logging()
    initialize_tracing()

    # Status holds the resource snapshot; keep kopf's own bookkeeping in annotations
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = 0
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = OPERATOR_MAX_WORKERS

    # Backoff for watch-stream errors: 1s, 2s, 4s ... 60s
    settings.batching.error_delays = [1, 2, 4, 8, 16, 32, 60]

    # Metrics and health checks share one port
    health.start_health_server(METRICS_PORT)
    health.mark_ready()


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Report not ready and flush traces while the operator drains."""
    health.mark_not_ready()
    shutdown_tracing()
