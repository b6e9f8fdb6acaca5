"""YAML configuration loader for the cascade agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

from configmap_cascade.resolver import DEFAULT_REFERENCE_PATH, parse_reference_path


@dataclass
class BackoffConfig:
    base_delay: float = 0.005
    max_delay: float = 1000.0


@dataclass
class ControllerConfig:
    workers: int = 2
    max_retries: int = 15
    reconcile_timeout: float = 30.0
    backoff: BackoffConfig = field(default_factory=BackoffConfig)


@dataclass
class KubernetesConfig:
    kubeconfig: Optional[Path] = None
    context: Optional[str] = None
    in_cluster: bool = False
    namespace: Optional[str] = None
    label_selector: Optional[str] = None
    watch_timeout: int = 300


@dataclass
class DependentConfig:
    group: str = "core.gardener.cloud"
    version: str = "v1beta1"
    plural: str = "shoots"
    reference_path: Tuple[str, ...] = DEFAULT_REFERENCE_PATH


@dataclass
class AgentConfig:
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    kubernetes: KubernetesConfig = field(default_factory=KubernetesConfig)
    dependent: DependentConfig = field(default_factory=DependentConfig)


def _section(data: dict, name: str) -> dict:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return section


def _parse_controller(section: dict) -> ControllerConfig:
    backoff_section = _section(section, "backoff")
    backoff = BackoffConfig(
        base_delay=float(backoff_section.get("base_delay", 0.005)),
        max_delay=float(backoff_section.get("max_delay", 1000.0)),
    )
    if backoff.base_delay <= 0 or backoff.max_delay < backoff.base_delay:
        raise ValueError("backoff requires 0 < base_delay <= max_delay")

    workers = int(section.get("workers", 2))
    if workers < 1:
        raise ValueError("controller 'workers' must be at least 1")

    return ControllerConfig(
        workers=workers,
        max_retries=int(section.get("max_retries", 15)),
        reconcile_timeout=float(section.get("reconcile_timeout", 30.0)),
        backoff=backoff,
    )


def _parse_kubernetes(section: dict) -> KubernetesConfig:
    kubeconfig = section.get("kubeconfig")
    return KubernetesConfig(
        kubeconfig=Path(kubeconfig) if kubeconfig else None,
        context=section.get("context"),
        in_cluster=bool(section.get("in_cluster", False)),
        namespace=section.get("namespace"),
        label_selector=section.get("label_selector"),
        watch_timeout=int(section.get("watch_timeout", 300)),
    )


def _parse_dependent(section: dict) -> DependentConfig:
    path = section.get("reference_path")
    if path is None:
        reference_path = DEFAULT_REFERENCE_PATH
    elif isinstance(path, str):
        reference_path = parse_reference_path(path)
    elif isinstance(path, list):
        reference_path = tuple(str(p) for p in path)
        if not reference_path:
            raise ValueError("reference path must not be empty")
    else:
        raise ValueError("'reference_path' must be a dotted string or a list")

    return DependentConfig(
        group=str(section.get("group", "core.gardener.cloud")),
        version=str(section.get("version", "v1beta1")),
        plural=str(section.get("plural", "shoots")),
        reference_path=reference_path,
    )


def load_config(path: Path) -> AgentConfig:
    data = yaml.safe_load(path.read_text())
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("Agent configuration must be a mapping")

    return AgentConfig(
        controller=_parse_controller(_section(data, "controller")),
        kubernetes=_parse_kubernetes(_section(data, "kubernetes")),
        dependent=_parse_dependent(_section(data, "dependent")),
    )
