"""
Optimistic concurrency guard.

Conflict detection only: no locks, no retries. A client that read the
record at updated_at=T may write only while the stored updated_at still
equals T at whole-second precision.
"""

import logging
from datetime import datetime

from gpat.errors import ConcurrencyConflict
from gpat.utils import epoch_seconds

logger = logging.getLogger(__name__)


class OptimisticConcurrencyGuard:
    def check(self, client_updated_at: str | datetime | None, stored_updated_at: str | datetime | None) -> None:
        """
        Raise ConcurrencyConflict when the client's copy is stale.

        No client timestamp means the client opted out of the check.
        """
        if client_updated_at in (None, ""):
            return
        if stored_updated_at is None:
            return
        try:
            client_seconds = epoch_seconds(client_updated_at)
        except ValueError:
            logger.warning(f"Unparseable updated_at from client: {client_updated_at!r}")
            raise ConcurrencyConflict() from None
        if client_seconds != epoch_seconds(stored_updated_at):
            raise ConcurrencyConflict()
