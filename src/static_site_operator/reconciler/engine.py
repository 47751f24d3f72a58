"""Reconciler: walks the resource graph against the live cloud account."""

from __future__ import annotations

import contextvars
import copy
import logging
import os
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any

from .. import metrics
from ..constants import (
    NODE_BUCKET,
    NODE_DISTRIBUTION,
    NODE_ZONE,
    STATE_CANCELLED,
    STATE_DESTROYED,
    STATE_FAILED,
    STATE_PENDING,
)
from ..resources.models import SiteConfig
from ..services.base import SiteProvider
from ..logging import log_node_event
from ..tracing import trace_span
from ..utils.context import with_node
from ..utils.errors import ReconcileCancelledError
from ..utils.rate_limit import call_with_retries
from .graph import NodeResult, ResourceGraph, RunContext
from .site import build_site_graph, verify_ordering

logger = logging.getLogger(__name__)

RECONCILE_MAX_WORKERS = int(os.getenv("RECONCILE_MAX_WORKERS", "4"))
CERTIFICATE_POLL_INTERVAL_SECONDS = float(os.getenv("CERTIFICATE_POLL_INTERVAL_SECONDS", "15"))


@dataclass
class ReconcileResult:
    """What one run did.

    Attributes:
        state: Snapshot of resource identifiers per node, to persist for the next run
        outputs: Read-only projections of applied state
        node_states: Final state of every node
        changed_nodes: Nodes that made at least one mutating call
        node_outputs: Outputs each applied node handed to its dependents
    """

    state: dict[str, dict[str, Any]]
    outputs: dict[str, str] = field(default_factory=dict)
    node_states: dict[str, str] = field(default_factory=dict)
    changed_nodes: list[str] = field(default_factory=list)
    node_outputs: dict[str, Any] = field(default_factory=dict)

    @property
    def mutations(self) -> int:
        return len(self.changed_nodes)


class Reconciler:
    """Converges one site's resource graph.

    The reconciler keeps nothing between runs except the state snapshot it is
    given and hands back; live resources are always re-read.
    """

    def __init__(
        self,
        provider: SiteProvider,
        config: SiteConfig,
        state: dict[str, dict[str, Any]] | None = None,
        graph: ResourceGraph | None = None,
        max_workers: int = RECONCILE_MAX_WORKERS,
        poll_interval: float = CERTIFICATE_POLL_INTERVAL_SECONDS,
    ) -> None:
        self.graph = graph or build_site_graph()
        verify_ordering(self.graph)
        self.config = config
        self.max_workers = max(1, max_workers)
        self.state: dict[str, dict[str, Any]] = copy.deepcopy(state or {})
        self.node_states: dict[str, str] = {name: STATE_PENDING for name in self.graph.names}
        self._cancel = threading.Event()
        self._lock = threading.Lock()
        self._ctx = RunContext(
            provider=provider,
            config=config,
            state=copy.deepcopy(self.state),
            cancel_event=self._cancel,
            poll_interval=poll_interval,
        )

    def cancel(self) -> None:
        """Abort the run; in-flight nodes stop at their next wait point."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _is_done(self, name: str) -> bool:
        return self.node_states[name] == self.graph[name].terminal_state

    def _ready(self, name: str) -> bool:
        return self.node_states[name] == STATE_PENDING and all(
            self._is_done(dep) for dep in self.graph.dependencies(name)
        )

    def _apply_node(self, name: str) -> NodeResult:
        node = self.graph[name]
        with with_node(name), trace_span(f"apply_{name}", kind=node.kind):
            if self._cancel.is_set():
                raise ReconcileCancelledError(f"Run cancelled before {name} started")
            result = call_with_retries(lambda: node.apply(self._ctx), f"apply {name}")
            log_node_event(
                logger,
                node.kind,
                "apply",
                "changed" if result.changed else "unchanged",
                f"{name} reached {result.state}",
                level=logging.INFO if result.changed else logging.DEBUG,
            )
        return result

    def apply(self) -> ReconcileResult:
        """Apply every node in dependency order, independent nodes in parallel.

        Returns:
            The run's result

        Raises:
            Exception: The first node error; nodes applied before it keep their
                identifiers in self.state and dependents are left pending
        """
        order = self.graph.topological_order()
        waves = self.graph.levels()
        logger.info(
            f"Applying {len(order)} nodes for {self.config.domain} in {len(waves)} waves: "
            + " -> ".join("+".join(wave) for wave in waves)
        )
        changed: list[str] = []
        error: BaseException | None = None
        in_flight: dict[Future[NodeResult], str] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="reconcile") as pool:

            def submit_ready() -> None:
                for name in order:
                    if self._ready(name) and name not in in_flight.values():
                        run_context = contextvars.copy_context()
                        in_flight[pool.submit(run_context.run, self._apply_node, name)] = name

            submit_ready()
            while in_flight:
                done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                for future in done:
                    name = in_flight.pop(future)
                    try:
                        result = future.result()
                    except Exception as e:
                        cancelled = isinstance(e, ReconcileCancelledError)
                        self.node_states[name] = STATE_CANCELLED if cancelled else STATE_FAILED
                        metrics.node_operations_total.labels(node=name, operation="apply", result="error").inc()
                        if error is None:
                            error = e
                            self._cancel.set()
                        continue

                    with self._lock:
                        self._ctx.results[name] = result
                        self.node_states[name] = result.state
                        if result.record:
                            self.state[name] = result.record
                    if result.changed:
                        changed.append(name)
                    metrics.node_operations_total.labels(
                        node=name, operation="apply", result="changed" if result.changed else "unchanged",
                    ).inc()

                if error is None and not self._cancel.is_set():
                    submit_ready()

        if error is not None:
            raise error
        if self._cancel.is_set():
            raise ReconcileCancelledError("Reconciliation cancelled")

        return ReconcileResult(
            state=copy.deepcopy(self.state),
            outputs=self.outputs(),
            node_states=dict(self.node_states),
            changed_nodes=[name for name in order if name in changed],
            node_outputs={name: result.outputs for name, result in self._ctx.results.items()},
        )

    def outputs(self) -> dict[str, str]:
        """Outputs available from the applied nodes."""
        outputs: dict[str, str] = {}
        if NODE_BUCKET in self.state:
            outputs["bucketName"] = self.state[NODE_BUCKET]["name"]
        if NODE_DISTRIBUTION in self.state:
            outputs["distributionDomain"] = self.state[NODE_DISTRIBUTION]["domainName"]
        outputs["siteUrl"] = self.config.site_url
        return outputs

    def destroy(self) -> list[str]:
        """Destroy every node in reverse dependency order.

        The hosted zone is read-only and never deleted. Each node's identifiers
        are dropped from self.state as soon as it is gone, so an error leaves a
        snapshot of what still exists.

        Returns:
            Names of the nodes that deleted something
        """
        destroyed: list[str] = []
        for name in reversed(self.graph.topological_order()):
            node = self.graph[name]
            if self._cancel.is_set():
                raise ReconcileCancelledError(f"Destroy cancelled before {name}")
            if node.destroy is None:
                if name != NODE_ZONE:
                    self.state.pop(name, None)
                self.node_states[name] = STATE_DESTROYED
                continue
            with with_node(name), trace_span(f"destroy_{name}", kind=node.kind):
                try:
                    deleted = call_with_retries(lambda: node.destroy(self._ctx), f"destroy {name}")
                except Exception:
                    self.node_states[name] = STATE_FAILED
                    metrics.node_operations_total.labels(node=name, operation="destroy", result="error").inc()
                    raise
                result = "deleted" if deleted else "absent"
                log_node_event(logger, node.kind, "destroy", result, f"{name} {result}")
            self.state.pop(name, None)
            self.node_states[name] = STATE_DESTROYED
            metrics.node_operations_total.labels(node=name, operation="destroy", result=result).inc()
            if deleted:
                destroyed.append(name)
        self.state.pop(NODE_ZONE, None)
        return destroyed
