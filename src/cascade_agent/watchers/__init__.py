"""Watcher implementations used by the cascade agent."""

from .kube import ConfigMapTracker, KubeConfigMapWatcher  # noqa: F401

__all__ = ["ConfigMapTracker", "KubeConfigMapWatcher"]
