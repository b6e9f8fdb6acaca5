"""Suppress notifications that did not change meaningful content."""

from __future__ import annotations

import logging
from typing import Optional

from .errors import MalformedEventError
from .events import Notification, ResourceAdded, ResourceUpdated
from .model import ConfigurationResource, ReconcileKey
from .workqueue import WorkQueue

LOG = logging.getLogger(__name__)


def content_changed(
    previous: Optional[ConfigurationResource], current: ConfigurationResource
) -> bool:
    """Return ``True`` if ``current`` carries different content than ``previous``.

    A change is meaningful only when the content blob differs under deep
    structural equality.  The version marker, and any other metadata, is
    ignored: it moves on every write to the object, including label or
    annotation edits that dependents do not care about.  A missing content
    blob is equivalent to an empty one.
    """

    if previous is None:
        return True
    return (previous.content or {}) != (current.content or {})


class ChangeFilter:
    """Turn configuration resource notifications into reconcile keys.

    The callbacks never block and only touch the (internally synchronized)
    work queue, so they are safe to call from any notification thread.
    """

    def __init__(self, queue: WorkQueue) -> None:
        self._queue = queue

    def handle(self, event: Notification) -> None:
        if isinstance(event, ResourceAdded):
            self.on_add(event.current)
        elif isinstance(event, ResourceUpdated):
            self.on_update(event.previous, event.current)
        else:
            raise TypeError(f"Unsupported event type: {type(event)!r}")

    def on_add(self, current: ConfigurationResource) -> None:
        try:
            key = ReconcileKey.for_object(current)
        except MalformedEventError as exc:
            LOG.error("Couldn't get key for object %r: %s", current, exc)
            return
        self._queue.add(key)

    def on_update(
        self, previous: ConfigurationResource, current: ConfigurationResource
    ) -> None:
        try:
            changed = content_changed(previous, current)
        except AttributeError as exc:
            LOG.error("Dropping malformed update %r -> %r: %s", previous, current, exc)
            return
        if not changed:
            LOG.debug(
                "No content change for %s/%s (version %s -> %s), not enqueuing",
                getattr(current, "namespace", None),
                getattr(current, "name", None),
                getattr(previous, "version", None),
                getattr(current, "version", None),
            )
            return
        self.on_add(current)
