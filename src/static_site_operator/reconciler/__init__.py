"""Resource graph and reconciler for the static site stack."""

from .engine import ReconcileResult, Reconciler
from .graph import NodeResult, ResourceGraph, ResourceNode, RunContext
from .site import build_site_graph, verify_ordering

__all__ = [
    "NodeResult",
    "ReconcileResult",
    "Reconciler",
    "ResourceGraph",
    "ResourceNode",
    "RunContext",
    "build_site_graph",
    "verify_ordering",
]
