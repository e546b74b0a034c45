"""Kubernetes operator reconciling data plane node sets."""

__version__ = "0.1.0"
