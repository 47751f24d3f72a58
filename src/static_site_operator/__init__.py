"""Kubernetes operator that reconciles static website stacks on AWS."""

__version__ = "0.1.0"
