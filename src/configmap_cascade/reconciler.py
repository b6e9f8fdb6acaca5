"""Reconcile a single configuration resource against its dependents."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Event
from typing import List, Optional

from .errors import CascadeError, NotFoundError, ReconcileCancelled, RetryableError
from .interfaces import ResourceReader, ResourceWriter
from .model import ConfigurationResource, ReconcileKey
from .resolver import DependencyResolver
from .staleness import is_stale
from .trigger import CascadeTrigger

LOG = logging.getLogger(__name__)


def _remaining(deadline: Optional[float]) -> Optional[float]:
    """Seconds left until ``deadline``, or ``None`` for no deadline."""

    if deadline is None:
        return None
    return max(deadline - time.monotonic(), 0.001)


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a successful reconcile pass."""

    key: ReconcileKey
    triggered: int = 0
    current: int = 0
    deleted: bool = False


class Reconciler:
    """Fetch a configuration resource and cascade to its stale dependents.

    The reconciler is stateless between calls.  Every pass fetches the
    resource and lists dependents afresh, so it is safe to run the same key
    any number of times; once every dependent has recorded the current
    version, a pass issues no triggers at all.
    """

    def __init__(
        self,
        reader: ResourceReader,
        writer: ResourceWriter,
        resolver: Optional[DependencyResolver] = None,
    ) -> None:
        self._reader = reader
        self._resolver = resolver or DependencyResolver(reader)
        self._trigger = CascadeTrigger(writer)

    def reconcile(
        self,
        key: ReconcileKey,
        stop_event: Optional[Event] = None,
        deadline: Optional[float] = None,
    ) -> ReconcileResult:
        """Run one pass for ``key``.

        ``deadline`` is a :func:`time.monotonic` timestamp.  The time left until
        it is handed to every blocking read and write as their timeout.  If it
        passes, or ``stop_event`` is set, before the fetch, before the list or
        before any trigger, the pass raises :class:`ReconcileCancelled`;
        triggers already sent are not undone.

        Raises :class:`RetryableError` (or a subclass) for anything that a
        later attempt may fix.
        """

        self._check_cancelled(key, stop_event, deadline)
        configuration = self._fetch(key, _remaining(deadline))
        if configuration is None:
            return ReconcileResult(key=key, deleted=True)

        self._check_cancelled(key, stop_event, deadline)
        try:
            matches = self._resolver.resolve(configuration, timeout=_remaining(deadline))
        except RetryableError:
            raise
        except Exception as exc:
            raise RetryableError(f"listing dependents for {key} failed: {exc}") from exc

        triggered = 0
        current = 0
        failed: List[str] = []
        for dependent, reference in matches:
            if not is_stale(reference, configuration):
                current += 1
                continue

            self._check_cancelled(key, stop_event, deadline)
            LOG.debug(
                "Dependent %s records %s at %s, current is %s",
                dependent.key,
                reference.configuration_name,
                reference.recorded_version,
                configuration.version,
            )
            try:
                if self._trigger.trigger(dependent, timeout=_remaining(deadline)):
                    triggered += 1
            except RetryableError as exc:
                LOG.warning("Cascade to %s failed: %s", dependent.key, exc)
                failed.append(dependent.key)

        if failed:
            raise CascadeError(failed)

        LOG.info(
            "Reconciled %s at version %s: %d triggered, %d current",
            key,
            configuration.version,
            triggered,
            current,
        )
        return ReconcileResult(key=key, triggered=triggered, current=current)

    def _fetch(
        self, key: ReconcileKey, timeout: Optional[float]
    ) -> Optional[ConfigurationResource]:
        try:
            return self._reader.get_configuration(key.namespace, key.name, timeout=timeout)
        except NotFoundError as exc:
            LOG.info("Object %s is gone, stop reconciling: %s", key, exc)
            return None
        except RetryableError:
            LOG.info("Unable to retrieve object %s from store", key)
            raise
        except Exception as exc:
            LOG.info("Unable to retrieve object %s from store: %s", key, exc)
            raise RetryableError(f"fetching {key} failed: {exc}") from exc

    @staticmethod
    def _check_cancelled(
        key: ReconcileKey, stop_event: Optional[Event], deadline: Optional[float]
    ) -> None:
        if stop_event is not None and stop_event.is_set():
            raise ReconcileCancelled(f"reconcile of {key} cancelled")
        if deadline is not None and time.monotonic() >= deadline:
            raise ReconcileCancelled(f"reconcile of {key} exceeded its deadline")
