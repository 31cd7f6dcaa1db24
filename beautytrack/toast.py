"""Auto-dismiss timers for the "expense recorded" toast."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from .models import Expense

if TYPE_CHECKING:
    from .config import BeautyTrackConfig
    from .ledger import Ledger, LedgerEvent

logger = logging.getLogger(__name__)

DEFAULT_TOAST_SECONDS = 3.0


def _job_id(expense_id: uuid.UUID) -> str:
    return f"toast-{expense_id}"


class ExpenseToastScheduler:
    """Clears the ledger's last created expense a few seconds after it appears.

    Each toast gets its own APScheduler job keyed by the expense id. A newer
    expense cancels the older job, and the dismissal itself only clears the
    toast if it still shows the same expense. Jobs run as coroutines on the
    event loop that owns the ledger, never on a worker thread.
    """

    def __init__(
        self,
        ledger: Ledger,
        delay_seconds: float = DEFAULT_TOAST_SECONDS,
        scheduler=None,
    ) -> None:
        """Initialize the toast scheduler.

        Args:
            ledger: Ledger whose expense announcements are watched.
            delay_seconds: Time a toast stays visible.
            scheduler: APScheduler scheduler to use. An AsyncIOScheduler
                is created when omitted; start() must then be called from
                the ledger's event loop.

        Raises:
            ImportError: If apscheduler is not installed.
        """
        if scheduler is None:
            try:
                from apscheduler.schedulers.asyncio import AsyncIOScheduler
            except ImportError:
                raise ImportError(
                    "apscheduler is required: pip install 'beautytrack[scheduler]'"
                )
            scheduler = AsyncIOScheduler(timezone=timezone.utc)

        self._ledger = ledger
        self._delay = timedelta(seconds=delay_seconds)
        self._scheduler = scheduler
        self._current: uuid.UUID | None = None
        self._running = False
        self._unsubscribe = ledger.subscribe(self._on_event)

    @classmethod
    def from_config(cls, ledger: Ledger, config: BeautyTrackConfig) -> ExpenseToastScheduler:
        """Build a scheduler using [notifications] toast_seconds."""
        return cls(ledger, delay_seconds=config.notifications.toast_seconds)

    @property
    def delay_seconds(self) -> float:
        return self._delay.total_seconds()

    def start(self) -> None:
        self._scheduler.start()
        self._running = True
        logger.info("Toast scheduler started")

    def stop(self) -> None:
        self._unsubscribe()
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Toast scheduler stopped")

    @property
    def running(self) -> bool:
        return self._running

    @property
    def current_expense_id(self) -> uuid.UUID | None:
        return self._current

    def get_jobs(self) -> list[dict]:
        """Return info about pending dismissals."""
        jobs = []
        for job in self._scheduler.get_jobs():
            run_time = getattr(job, "next_run_time", None) or job.trigger.run_date
            jobs.append({"id": job.id, "run_date": str(run_time)})
        return jobs

    def cancel(self, expense_id: uuid.UUID) -> bool:
        """Cancel the pending dismissal for an expense, if any."""
        if self._current == expense_id:
            self._current = None
        job_id = _job_id(expense_id)
        if self._scheduler.get_job(job_id) is None:
            return False
        self._scheduler.remove_job(job_id)
        return True

    def dismiss(self, expense_id: uuid.UUID) -> bool:
        """Clear the toast now if it still shows the given expense."""
        self.cancel(expense_id)
        return self._ledger.dismiss_expense_toast(expense_id)

    def _on_event(self, event: LedgerEvent) -> None:
        if event.kind != "last_created_expense":
            return
        if self._current is not None:
            self.cancel(self._current)
        if isinstance(event.payload, Expense):
            self._schedule(event.payload)

    def _schedule(self, expense: Expense) -> None:
        run_date = datetime.now(timezone.utc) + self._delay
        self._scheduler.add_job(
            self._dismiss,
            trigger="date",
            run_date=run_date,
            args=[expense.id],
            id=_job_id(expense.id),
            replace_existing=True,
        )
        self._current = expense.id
        logger.debug("Toast for expense %s dismisses at %s", expense.id, run_date)

    async def _dismiss(self, expense_id: uuid.UUID) -> None:
        # Coroutine jobs run on the scheduler's event loop thread.
        self.dismiss(expense_id)
