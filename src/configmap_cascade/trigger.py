"""Submit content-free updates that make dependents re-record their reference."""

from __future__ import annotations

import logging
from typing import Optional

from .errors import NotFoundError, RetryableError
from .interfaces import ResourceWriter
from .model import Dependent

LOG = logging.getLogger(__name__)


class CascadeTrigger:
    """Send an empty patch to a dependent.

    The patch carries no fields.  Its only purpose is to pass the update
    through the external admission logic, which stamps the current version of
    the referenced configuration onto the dependent.  Sending it repeatedly is
    harmless.
    """

    def __init__(self, writer: ResourceWriter) -> None:
        self._writer = writer

    def trigger(self, dependent: Dependent, timeout: Optional[float] = None) -> bool:
        """Return ``True`` if the patch was submitted, ``False`` if the dependent is gone."""

        try:
            self._writer.patch_empty(dependent, timeout=timeout)
        except NotFoundError:
            LOG.info("Dependent %s is gone, skipping cascade", dependent.key)
            return False
        except RetryableError:
            raise
        except Exception as exc:
            raise RetryableError(
                f"empty patch for {dependent.key} failed: {exc}"
            ) from exc

        LOG.info("Scheduled dependent %s for reconciliation", dependent.key)
        return True
