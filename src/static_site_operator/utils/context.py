"""Per-run context carried into log lines and worker threads.

Reconcile runs fan out over a thread pool; each node runs inside a copy of
the submitting context, so values bound here reach every log line of the run.
"""

from __future__ import annotations

import contextvars
import uuid
from contextlib import AbstractContextManager, contextmanager
from typing import Any, Iterator

correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("correlation_id", default=None)
site_domain: contextvars.ContextVar[str | None] = contextvars.ContextVar("site_domain", default=None)
node_name: contextvars.ContextVar[str | None] = contextvars.ContextVar("node_name", default=None)


def new_correlation_id() -> str:
    """Generate a correlation ID for one reconciliation run."""
    return uuid.uuid4().hex[:16]


@contextmanager
def _bound(var: contextvars.ContextVar[str | None], value: str) -> Iterator[str]:
    token = var.set(value)
    try:
        yield value
    finally:
        var.reset(token)


def with_correlation_id(corr_id: str) -> AbstractContextManager[str]:
    """Bind a correlation ID for the duration of a block."""
    return _bound(correlation_id, corr_id)


def with_site(domain: str) -> AbstractContextManager[str]:
    """Bind the site domain being reconciled."""
    return _bound(site_domain, domain)


def with_node(name: str) -> AbstractContextManager[str]:
    """Bind the graph node currently being applied or destroyed."""
    return _bound(node_name, name)


def get_context_dict(additional: dict[str, Any] | None = None) -> dict[str, Any]:
    """Get the bound context values, skipping unset ones.

    Args:
        additional: Additional key-value pairs to include

    Returns:
        Dictionary with any of correlation_id, site and node
    """
    ctx: dict[str, Any] = {}
    for key, var in (("correlation_id", correlation_id), ("site", site_domain), ("node", node_name)):
        value = var.get()
        if value:
            ctx[key] = value

    if additional:
        ctx.update(additional)

    return ctx
