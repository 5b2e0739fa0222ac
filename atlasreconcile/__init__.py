"""Reconcile managed database clusters with a declared specification."""

__version__ = "0.8.0"
__all__ = ["advanced", "clusters", "jsonutil", "reconciler", "serverless", "workflow"]