"""Find the dependents that reference a configuration resource."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, List, Optional, Sequence, Tuple

from .interfaces import ResourceReader
from .model import ConfigurationResource, Dependent, Reference

LOG = logging.getLogger(__name__)

# Shoot.spec.kubernetes.kubeAPIServer.auditConfig.auditPolicy.configMapRef
DEFAULT_REFERENCE_PATH: Tuple[str, ...] = (
    "spec",
    "kubernetes",
    "kubeAPIServer",
    "auditConfig",
    "auditPolicy",
    "configMapRef",
)
NAME_FIELD = "name"
VERSION_FIELD = "resourceVersion"


def parse_reference_path(value: str) -> Tuple[str, ...]:
    """Split a dotted field path such as ``spec.foo.barRef``."""

    segments = tuple(part for part in value.split(".") if part)
    if not segments:
        raise ValueError("reference path must not be empty")
    return segments


def extract_reference(
    dependent: Dependent, path: Sequence[str] = DEFAULT_REFERENCE_PATH
) -> Optional[Reference]:
    """Project the configuration reference out of ``dependent``.

    Returns ``None`` when any segment of ``path`` is absent or not a mapping,
    or when the reference carries no name.  Never raises.
    """

    node: Any = dependent.body
    for segment in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(segment)

    if not isinstance(node, Mapping):
        return None

    name = node.get(NAME_FIELD)
    if not isinstance(name, str) or not name:
        return None

    version = node.get(VERSION_FIELD)
    return Reference(
        configuration_name=name,
        recorded_version=None if version is None else str(version),
    )


class DependencyResolver:
    """List a namespace's dependents and keep those referencing a resource.

    Results are never cached: every call lists afresh through the injected
    reader so a retry always acts on the current dependency graph.
    """

    def __init__(
        self,
        reader: ResourceReader,
        reference_path: Sequence[str] = DEFAULT_REFERENCE_PATH,
    ) -> None:
        self._reader = reader
        self._reference_path = tuple(reference_path)

    @property
    def reference_path(self) -> Tuple[str, ...]:
        return self._reference_path

    def extract_reference(self, dependent: Dependent) -> Optional[Reference]:
        return extract_reference(dependent, self._reference_path)

    def list_dependents(
        self, namespace: str, timeout: Optional[float] = None
    ) -> Sequence[Dependent]:
        return self._reader.list_dependents(namespace, timeout=timeout)

    def resolve(
        self, configuration: ConfigurationResource, timeout: Optional[float] = None
    ) -> List[Tuple[Dependent, Reference]]:
        """Return ``(dependent, reference)`` pairs naming ``configuration``."""

        matches: List[Tuple[Dependent, Reference]] = []
        for dependent in self.list_dependents(configuration.namespace, timeout=timeout):
            reference = self.extract_reference(dependent)
            if reference is None:
                continue
            if reference.configuration_name != configuration.name:
                continue
            matches.append((dependent, reference))

        LOG.debug(
            "%d dependent(s) in %s reference %s",
            len(matches),
            configuration.namespace,
            configuration.name,
        )
        return matches
