"""Age-based deletion of finished report requests."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from reporting_engine.errors import InvalidStateError
from reporting_engine.scheduler.scheduler import ReportScheduler
from reporting_engine.state.base import ReportHistoryStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RetentionManager:
    """Delete terminal, unsaved requests older than a configured age.

    Parameters
    ----------
    history:
        Store to sweep.
    age_in_hours:
        Requests whose ``requested_on`` is older than this are removed.
        ``0`` disables the sweep.
    scheduler:
        When given, deletions go through the scheduler so a request that is
        running is never removed underneath it.
    clock:
        Source of the current time.
    """

    def __init__(
        self,
        history: ReportHistoryStore,
        age_in_hours: int,
        scheduler: ReportScheduler | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if age_in_hours < 0:
            raise ValueError(f"age_in_hours must not be negative, got {age_in_hours}.")
        self._history = history
        self._age = timedelta(hours=age_in_hours)
        self._scheduler = scheduler
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._age > timedelta(0)

    def cutoff(self) -> datetime:
        return self._clock() - self._age

    def delete_old_report_requests(self) -> int:
        """Run one sweep and return the number of requests deleted."""
        if not self.enabled:
            logger.debug("Report retention disabled; nothing deleted")
            return 0

        cutoff = self.cutoff()
        deleted = 0
        for request in self._history.get_expired_requests(cutoff):
            if request.uuid is None or request.saved:
                continue
            try:
                if self._scheduler is not None:
                    removed = self._scheduler.delete_request(request.uuid)
                else:
                    removed = self._history.delete(request.uuid)
            except InvalidStateError:
                logger.debug("Skipping report request %s; it is running again", request.uuid)
                continue
            if removed:
                deleted += 1

        if deleted:
            logger.info("Deleted %d report request(s) requested before %s", deleted, cutoff.isoformat())
        return deleted
