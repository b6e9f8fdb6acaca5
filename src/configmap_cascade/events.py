"""Notification primitives consumed by the change filter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .model import ConfigurationResource


@dataclass(frozen=True)
class ResourceAdded:
    """A configuration resource was observed for the first time."""

    current: ConfigurationResource


@dataclass(frozen=True)
class ResourceUpdated:
    """A configuration resource changed.

    Both snapshots are delivered so the filter can decide whether the change
    touched the content or only metadata such as the version marker.
    """

    previous: ConfigurationResource
    current: ConfigurationResource


Notification = Union[ResourceAdded, ResourceUpdated]
