"""Kubernetes backed implementation of the reader/writer interfaces."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Sequence

from kubernetes import client, config as kube_config
from kubernetes.client import ApiException, CoreV1Api, CustomObjectsApi

from configmap_cascade.errors import NotFoundError, RetryableError
from configmap_cascade.interfaces import ResourceReader, ResourceWriter
from configmap_cascade.model import ConfigurationResource, Dependent

from .config import DependentConfig, KubernetesConfig

LOG = logging.getLogger(__name__)


def load_kube_config(settings: KubernetesConfig) -> None:
    """Configure the global kubernetes client from agent settings."""

    if settings.in_cluster:
        kube_config.load_incluster_config()
        return
    kube_config.load_kube_config(
        config_file=str(settings.kubeconfig) if settings.kubeconfig else None,
        context=settings.context,
    )


def config_map_to_resource(config_map: Any) -> ConfigurationResource:
    """Convert a ``V1ConfigMap`` into a :class:`ConfigurationResource`.

    Only ``.data`` is treated as content.  Labels, annotations and the like
    are metadata and must not cause cascades.
    """

    metadata = config_map.metadata
    data = config_map.data or {}
    return ConfigurationResource(
        namespace=metadata.namespace,
        name=metadata.name,
        version=metadata.resource_version,
        content=dict(data),
    )


def object_to_dependent(obj: Mapping[str, Any]) -> Dependent:
    metadata = obj.get("metadata") or {}
    return Dependent(
        namespace=metadata.get("namespace", ""),
        name=metadata.get("name", ""),
        body=obj,
    )


def _translate(exc: ApiException, what: str) -> Exception:
    if exc.status == 404:
        return NotFoundError(f"{what} not found")
    return RetryableError(f"{what}: API error {exc.status} {exc.reason}")


class KubeResourceClient(ResourceReader, ResourceWriter):
    """Read ConfigMaps and dependent custom objects, patch dependents.

    ``request_timeout`` bounds API calls made without an explicit timeout.
    """

    def __init__(
        self,
        dependent: DependentConfig,
        core_api: Optional[CoreV1Api] = None,
        custom_api: Optional[CustomObjectsApi] = None,
        request_timeout: Optional[float] = None,
    ) -> None:
        self._dependent = dependent
        self._core_api = core_api or client.CoreV1Api()
        self._custom_api = custom_api or client.CustomObjectsApi()
        self._request_timeout = request_timeout

    def _timeout(self, timeout: Optional[float]) -> Optional[float]:
        return timeout if timeout is not None else self._request_timeout

    def get_configuration(
        self, namespace: str, name: str, timeout: Optional[float] = None
    ) -> ConfigurationResource:
        try:
            config_map = self._core_api.read_namespaced_config_map(
                name=name,
                namespace=namespace,
                _request_timeout=self._timeout(timeout),
            )
        except ApiException as exc:
            raise _translate(exc, f"configmap {namespace}/{name}") from exc
        return config_map_to_resource(config_map)

    def list_dependents(
        self, namespace: str, timeout: Optional[float] = None
    ) -> Sequence[Dependent]:
        try:
            response = self._custom_api.list_namespaced_custom_object(
                group=self._dependent.group,
                version=self._dependent.version,
                namespace=namespace,
                plural=self._dependent.plural,
                _request_timeout=self._timeout(timeout),
            )
        except ApiException as exc:
            # a missing namespace lists as empty; 404 means the type is not served
            raise RetryableError(
                f"listing {self._dependent.plural} in {namespace}: "
                f"API error {exc.status} {exc.reason}"
            ) from exc

        items: List[Dependent] = []
        for obj in response.get("items") or []:
            dependent = object_to_dependent(obj)
            if not dependent.name:
                LOG.warning("Skipping %s without a name in %s", self._dependent.plural, namespace)
                continue
            items.append(dependent)
        return items

    def patch_empty(self, dependent: Dependent, timeout: Optional[float] = None) -> None:
        try:
            self._custom_api.patch_namespaced_custom_object(
                group=self._dependent.group,
                version=self._dependent.version,
                namespace=dependent.namespace,
                plural=self._dependent.plural,
                name=dependent.name,
                body={},
                _request_timeout=self._timeout(timeout),
            )
        except ApiException as exc:
            raise _translate(exc, f"{self._dependent.plural} {dependent.key}") from exc
