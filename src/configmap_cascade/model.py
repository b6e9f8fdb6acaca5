"""Data structures describing configuration resources and their dependents.

These are read-only snapshots.  The core never mutates a configuration
resource or a dependent; it only reads them and asks the external system to
refresh a dependent's recorded reference.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .errors import MalformedEventError


@dataclass(frozen=True)
class ReconcileKey:
    """Identity of a configuration resource awaiting reconciliation."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def for_object(cls, obj: Any) -> "ReconcileKey":
        """Derive the key of ``obj`` from its ``namespace``/``name`` attributes."""

        namespace = getattr(obj, "namespace", None)
        name = getattr(obj, "name", None)
        if not isinstance(namespace, str) or not namespace:
            raise MalformedEventError(f"object {obj!r} has no namespace")
        if not isinstance(name, str) or not name:
            raise MalformedEventError(f"object {obj!r} has no name")
        return cls(namespace=namespace, name=name)


@dataclass(frozen=True)
class ConfigurationResource:
    """Shared configuration whose content changes are propagated.

    Attributes
    ----------
    namespace, name:
        Identity of the resource.
    version:
        Opaque version marker.  Only ever compared for equality.
    content:
        The content blob.  Changes to it are the only changes that count as
        meaningful; see :func:`configmap_cascade.filter.content_changed`.
    """

    namespace: str
    name: str
    version: str
    content: Mapping[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> ReconcileKey:
        return ReconcileKey(self.namespace, self.name)


@dataclass(frozen=True)
class Reference:
    """A dependent's pointer at a configuration resource."""

    configuration_name: str
    recorded_version: Optional[str] = None


@dataclass(frozen=True)
class Dependent:
    """An object that references a configuration resource by name.

    ``body`` is the raw object; the reference is projected out of it by the
    dependency resolver.
    """

    namespace: str
    name: str
    body: Mapping[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"
