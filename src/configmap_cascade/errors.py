"""Error taxonomy shared by the reconciler and its collaborators."""

from __future__ import annotations

from typing import Sequence


class CascadeBaseError(Exception):
    """Base class for errors raised by the cascade core."""


class NotFoundError(CascadeBaseError):
    """The requested object does not exist (anymore).

    Readers and writers raise this so the core can treat a vanished
    configuration resource or dependent as a benign terminal state.
    """


class RetryableError(CascadeBaseError):
    """A transient failure; the key should be retried with backoff."""


class ReconcileCancelled(RetryableError):
    """The reconcile pass was interrupted by its stop event or deadline."""


class CascadeError(RetryableError):
    """One or more cascade triggers failed during a reconcile pass."""

    def __init__(self, failed: Sequence[str]) -> None:
        self.failed = list(failed)
        super().__init__(
            f"cascade trigger failed for {len(self.failed)} dependent(s): "
            + ", ".join(self.failed)
        )


class MalformedEventError(ValueError):
    """A notification payload from which no reconcile key can be derived."""
