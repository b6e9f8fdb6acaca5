"""Cascade configuration resource changes to the objects that reference them.

When the content of a shared configuration resource (for example a
ConfigMap holding an audit policy) changes, every dependent in the same
namespace that references it by name records the configuration's version.
Dependents whose recorded version is stale receive an empty patch, which
makes the external admission logic stamp the current version.

The package is split along the data flow:

* :mod:`~configmap_cascade.filter` drops notifications without content
  changes and enqueues reconcile keys;
* :mod:`~configmap_cascade.workqueue` deduplicates keys and schedules
  retries with exponential backoff;
* :mod:`~configmap_cascade.reconciler` fetches the resource, resolves its
  dependents, evaluates staleness and issues triggers; and
* :mod:`~configmap_cascade.controller` runs the worker pool.

Reading and writing objects is delegated to implementations of
:class:`~configmap_cascade.interfaces.ResourceReader` and
:class:`~configmap_cascade.interfaces.ResourceWriter`.
"""

from .controller import Controller  # noqa: F401
from .errors import (  # noqa: F401
    CascadeError,
    MalformedEventError,
    NotFoundError,
    ReconcileCancelled,
    RetryableError,
)
from .events import ResourceAdded, ResourceUpdated  # noqa: F401
from .filter import ChangeFilter, content_changed  # noqa: F401
from .interfaces import ResourceReader, ResourceWriter  # noqa: F401
from .model import ConfigurationResource, Dependent, ReconcileKey, Reference  # noqa: F401
from .reconciler import ReconcileResult, Reconciler  # noqa: F401
from .resolver import DependencyResolver, extract_reference  # noqa: F401
from .staleness import is_stale  # noqa: F401
from .trigger import CascadeTrigger  # noqa: F401
from .workqueue import ExponentialBackoff, RateLimitingQueue  # noqa: F401

__all__ = [
    "CascadeError",
    "CascadeTrigger",
    "ChangeFilter",
    "ConfigurationResource",
    "Controller",
    "Dependent",
    "DependencyResolver",
    "ExponentialBackoff",
    "MalformedEventError",
    "NotFoundError",
    "RateLimitingQueue",
    "ReconcileCancelled",
    "ReconcileKey",
    "ReconcileResult",
    "Reconciler",
    "Reference",
    "ResourceAdded",
    "ResourceReader",
    "ResourceUpdated",
    "ResourceWriter",
    "RetryableError",
    "content_changed",
    "extract_reference",
    "is_stale",
]
