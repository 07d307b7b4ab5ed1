"""Background jobs for remote sync.

Three jobs share one APScheduler instance, each under a fixed job id with
``replace_existing=True`` so at most one of each is ever pending:

- ``snapshot_push``: debounced push of the full state. Every local mutation
  replaces the pending job with a new one ``delay`` in the future, so a
  burst of edits becomes a single push. The job reads the state when it
  fires, not when it was scheduled.
- ``outbox_drain``: one background pass over the reconciliation outbox.
- ``remote_reload``: optional periodic reload from the remote.

Non-coroutine jobs run on the event loop's default thread pool.
"""
import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

PUSH_JOB_ID = "snapshot_push"
OUTBOX_JOB_ID = "outbox_drain"
RELOAD_JOB_ID = "remote_reload"


class SyncScheduler:
    """Debounces snapshot pushes and runs sync jobs in the background.

    Args:
        push: Called with no arguments when the debounce timer fires.
        delay_ms: Quiet period before a push, in milliseconds.
        scheduler: APScheduler instance; a new AsyncIOScheduler by default.
    """

    def __init__(
        self,
        push: Callable[[], Any] | None = None,
        delay_ms: int = 800,
        scheduler: AsyncIOScheduler | None = None,
    ):
        self.push = push
        self.delay = timedelta(milliseconds=delay_ms)
        self.scheduler = scheduler or AsyncIOScheduler(timezone=UTC)

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info(f"Sync scheduler started, push debounce {self.delay.total_seconds():.3f}s")

    def shutdown(self) -> None:
        """Graceful shutdown. Pending jobs are dropped, not run."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Sync scheduler shut down")

    def notify_mutated(self) -> None:
        """Restart the debounce timer for a snapshot push."""
        if self.push is None:
            return
        self.scheduler.add_job(
            self._push_job,
            trigger=DateTrigger(run_date=datetime.now(UTC) + self.delay),
            id=PUSH_JOB_ID,
            replace_existing=True,
            misfire_grace_time=None,
        )

    def has_pending_push(self) -> bool:
        return self.scheduler.get_job(PUSH_JOB_ID) is not None

    def _push_job(self) -> None:
        """Debounced push job. Best effort: failures are logged, not retried."""
        try:
            self.push()
        except Exception as e:
            logger.error(f"Debounced push failed: {e}")

    def schedule_outbox_drain(self, drain: Callable[[], Any]) -> None:
        """Run ``drain`` once, right away, without blocking the caller."""

        def drain_job():
            try:
                stats = drain()
                logger.info(f"Background outbox drain completed: {stats}")
            except Exception as e:
                logger.error(f"Background outbox drain failed: {e}")

        self.scheduler.add_job(
            drain_job,
            trigger=DateTrigger(run_date=datetime.now(UTC)),
            id=OUTBOX_JOB_ID,
            replace_existing=True,
            misfire_grace_time=None,
        )

    def schedule_periodic_reload(self, reload: Callable[[], Any], minutes: int) -> None:
        """Reload from the remote every ``minutes``. Zero or less disables it."""
        if minutes <= 0:
            return

        def reload_job():
            try:
                reload()
            except Exception as e:
                logger.error(f"Background reload failed: {e}")

        self.scheduler.add_job(
            reload_job,
            trigger=IntervalTrigger(minutes=minutes),
            id=RELOAD_JOB_ID,
            replace_existing=True,
        )
        logger.info(f"Remote reload scheduled every {minutes} minutes")
