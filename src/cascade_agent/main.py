"""Entry point for the standalone cascade agent."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event
from typing import Sequence

from kubernetes import client

from configmap_cascade import (
    ChangeFilter,
    Controller,
    DependencyResolver,
    ExponentialBackoff,
    RateLimitingQueue,
    Reconciler,
    ResourceReader,
    ResourceWriter,
)
from configmap_cascade.resolver import DEFAULT_REFERENCE_PATH

from .config import ControllerConfig, load_config
from .kube import KubeResourceClient, load_kube_config
from .watchers import KubeConfigMapWatcher

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def build_controller(
    settings: ControllerConfig,
    reader: ResourceReader,
    writer: ResourceWriter,
    reference_path: Sequence[str] = DEFAULT_REFERENCE_PATH,
) -> Controller:
    """Wire queue, resolver and reconciler into a controller."""

    queue = RateLimitingQueue(
        ExponentialBackoff(
            base_delay=settings.backoff.base_delay,
            max_delay=settings.backoff.max_delay,
        )
    )
    reconciler = Reconciler(
        reader, writer, resolver=DependencyResolver(reader, reference_path)
    )
    return Controller(
        queue,
        reconciler,
        workers=settings.workers,
        max_retries=settings.max_retries,
        reconcile_timeout=settings.reconcile_timeout,
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Cascade ConfigMap changes to the objects referencing them"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("/etc/configmap-cascade/agent.yaml"),
        help="Path to the agent configuration file",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    config = load_config(args.config)
    load_kube_config(config.kubernetes)

    kube_client = KubeResourceClient(
        config.dependent, request_timeout=config.controller.reconcile_timeout
    )
    controller = build_controller(
        config.controller,
        kube_client,
        kube_client,
        reference_path=config.dependent.reference_path,
    )
    change_filter = ChangeFilter(controller.queue)

    stop_event = Event()
    watcher = KubeConfigMapWatcher(
        change_filter.handle,
        core_api=client.CoreV1Api(),
        stop_event=stop_event,
        namespace=config.kubernetes.namespace,
        label_selector=config.kubernetes.label_selector,
        timeout_seconds=config.kubernetes.watch_timeout,
    )

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        watcher.request_stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    controller.start(stop_event)
    watcher.start()

    try:
        while not stop_event.is_set():
            stop_event.wait(1.0)
    except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
        watcher.request_stop()

    watcher.join()
    controller.stop()

    LOG.info("cascade agent stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
