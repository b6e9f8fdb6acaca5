"""Kubernetes ConfigMap watcher publishing configuration notifications."""

from __future__ import annotations

import logging
import random
from threading import Event, Lock, Thread
from typing import Any, Callable, Dict, Iterable, Optional

from kubernetes import watch
from kubernetes.client import ApiException, CoreV1Api

from configmap_cascade.events import Notification, ResourceAdded, ResourceUpdated
from configmap_cascade.model import ConfigurationResource, ReconcileKey

from ..kube import config_map_to_resource

LOG = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 30.0


class ConfigMapTracker:
    """Remember the last seen snapshot per ConfigMap.

    The watch API only delivers the new object, so the tracker supplies the
    previous snapshot an update notification needs.
    """

    def __init__(self, sink: Callable[[Notification], None]) -> None:
        self._sink = sink
        self._seen: Dict[ReconcileKey, ConfigurationResource] = {}

    def __len__(self) -> int:
        return len(self._seen)

    def handle_event(self, event_type: str, config_map: Any) -> None:
        if event_type == "BOOKMARK":
            return

        metadata = getattr(config_map, "metadata", None)
        if metadata is None or not metadata.name or not metadata.namespace:
            LOG.error("Dropping %s event for malformed ConfigMap %r", event_type, config_map)
            return

        if event_type == "DELETED":
            key = ReconcileKey(metadata.namespace, metadata.name)
            if self._seen.pop(key, None) is not None:
                LOG.debug("ConfigMap %s deleted", key)
            return

        if event_type in ("ADDED", "MODIFIED"):
            self.upsert(config_map_to_resource(config_map))
            return

        LOG.debug("Ignoring watch event of type %r", event_type)

    def upsert(self, resource: ConfigurationResource) -> None:
        previous = self._seen.get(resource.key)
        self._seen[resource.key] = resource
        if previous is None:
            self._sink(ResourceAdded(resource))
        elif previous.version != resource.version:
            self._sink(ResourceUpdated(previous, resource))

    def sync(self, config_maps: Iterable[Any]) -> None:
        """Apply a full listing; objects missing from it are forgotten."""

        listed = set()
        for config_map in config_maps:
            metadata = getattr(config_map, "metadata", None)
            if metadata is None or not metadata.name or not metadata.namespace:
                continue
            resource = config_map_to_resource(config_map)
            listed.add(resource.key)
            self.upsert(resource)

        for key in set(self._seen) - listed:
            LOG.debug("ConfigMap %s vanished while not watching", key)
            del self._seen[key]


class KubeConfigMapWatcher(Thread):
    """List then watch ConfigMaps and feed changes to ``sink``."""

    def __init__(
        self,
        sink: Callable[[Notification], None],
        *,
        core_api: CoreV1Api,
        stop_event: Event,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
        timeout_seconds: int = 300,
    ) -> None:
        super().__init__(daemon=True, name="configmap-watcher")
        self._core_api = core_api
        self._stop = stop_event
        self._namespace = namespace
        self._label_selector = label_selector
        self._timeout_seconds = timeout_seconds
        self._tracker = ConfigMapTracker(sink)
        self._active_watch: Optional[watch.Watch] = None
        self._watch_lock = Lock()

    @property
    def tracker(self) -> ConfigMapTracker:
        return self._tracker

    def _list_call(self) -> Callable[..., Any]:
        if self._namespace:
            return self._core_api.list_namespaced_config_map
        return self._core_api.list_config_map_for_all_namespaces

    def _list_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if self._namespace:
            kwargs["namespace"] = self._namespace
        if self._label_selector:
            kwargs["label_selector"] = self._label_selector
        return kwargs

    def relist(self) -> Optional[str]:
        """List all ConfigMaps, publish differences and return the list version."""

        response = self._list_call()(**self._list_kwargs())
        self._tracker.sync(response.items or [])
        resource_version = getattr(response.metadata, "resource_version", None)
        LOG.debug(
            "Listed %d ConfigMap(s) at resource version %s",
            len(self._tracker),
            resource_version,
        )
        return resource_version

    def watch_once(self, resource_version: Optional[str]) -> Optional[str]:
        """Consume one watch stream; return the last resource version seen."""

        watcher = watch.Watch()
        with self._watch_lock:
            self._active_watch = watcher
        try:
            stream = watcher.stream(
                self._list_call(),
                resource_version=resource_version,
                timeout_seconds=self._timeout_seconds,
                **self._list_kwargs(),
            )
            for event in stream:
                if self._stop.is_set():
                    break
                obj = event.get("object")
                if obj is None:
                    continue
                metadata = getattr(obj, "metadata", None)
                if metadata is not None and metadata.resource_version:
                    resource_version = metadata.resource_version
                self._tracker.handle_event(str(event.get("type", "")), obj)
        finally:
            watcher.stop()
            with self._watch_lock:
                if self._active_watch is watcher:
                    self._active_watch = None
        return resource_version

    def request_stop(self) -> None:
        self._stop.set()
        with self._watch_lock:
            active = self._active_watch
        if active is not None:
            active.stop()

    def run(self) -> None:
        LOG.info(
            "Starting ConfigMap watcher (namespace=%s, selector=%s)",
            self._namespace or "<all>",
            self._label_selector,
        )
        resource_version: Optional[str] = None
        backoff = 1.0
        while not self._stop.is_set():
            try:
                if resource_version is None:
                    resource_version = self.relist()
                resource_version = self.watch_once(resource_version)
                backoff = 1.0
            except ApiException as exc:
                if exc.status == 410:
                    LOG.warning("Watch resource version expired, re-listing")
                    resource_version = None
                    continue
                LOG.exception("Kubernetes API watch error")
                backoff = self._backoff(backoff)
            except Exception:  # pragma: no cover - logged below
                LOG.exception("Unexpected ConfigMap watch error")
                backoff = self._backoff(backoff)
        LOG.info("Stopping ConfigMap watcher")

    def _backoff(self, current: float) -> float:
        self._stop.wait(current * (0.5 + random.random()))  # noqa: S311
        return min(current * 2, MAX_BACKOFF_SECONDS)
