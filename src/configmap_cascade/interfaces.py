"""Abstract read/write interfaces the reconciler depends on.

Every call takes an optional ``timeout`` in seconds.  Implementations must
not block longer than that on I/O; ``None`` means no bound.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from .model import ConfigurationResource, Dependent


class ResourceReader(ABC):
    """Read access to configuration resources and their dependents."""

    @abstractmethod
    def get_configuration(
        self, namespace: str, name: str, timeout: Optional[float] = None
    ) -> ConfigurationResource:
        """Return the current snapshot, raising :class:`NotFoundError` if gone."""

    @abstractmethod
    def list_dependents(
        self, namespace: str, timeout: Optional[float] = None
    ) -> Sequence[Dependent]:
        """Return every dependent object in ``namespace``.

        An empty namespace yields an empty sequence.  Any failure to list is
        an error the reconciler retries.
        """


class ResourceWriter(ABC):
    """Write access used solely to submit cascade triggers."""

    @abstractmethod
    def patch_empty(self, dependent: Dependent, timeout: Optional[float] = None) -> None:
        """Submit a merge patch with no field changes against ``dependent``.

        Raises :class:`NotFoundError` if the dependent no longer exists.
        """
