"""Decide whether a dependent's recorded reference lags behind."""

from __future__ import annotations

from .model import ConfigurationResource, Reference


def is_stale(reference: Reference, current: ConfigurationResource) -> bool:
    """Return ``True`` if ``reference`` points at ``current`` but at another version.

    Version markers are opaque tokens and are only compared for equality;
    a reference without a recorded version is always stale.
    """

    return (
        reference.configuration_name == current.name
        and reference.recorded_version != current.version
    )
