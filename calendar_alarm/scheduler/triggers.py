"""Timer facilities used by the alarm engine.

The engine only decides *when* to run; a TriggerScheduler is told to
invoke a handler (``search`` or ``run``) periodically or at an instant.
"""
from datetime import datetime
from typing import Any, Callable, Protocol

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from loguru import logger

from .schedule import from_ms, to_ms

logger = logger.bind(module="scheduler.triggers")

DispatchCallback = Callable[[str], Any]


# ============== Protocol Definitions ==============

class TriggerScheduler(Protocol):
    """Protocol for periodic and one-shot triggers."""

    def schedule_repeating(self, interval_hours: float, handler_id: str) -> None:
        """Invoke ``handler_id`` every ``interval_hours``, replacing any existing trigger."""
        ...

    def schedule_at(self, at_ms: int, handler_id: str) -> None:
        """Invoke ``handler_id`` once at ``at_ms``, replacing any existing trigger."""
        ...

    def cancel(self, handler_id: str) -> None:
        """Remove the trigger for ``handler_id``; a no-op if none exists."""
        ...


class ApschedulerTriggers:
    """TriggerScheduler backed by an APScheduler BackgroundScheduler.

    Jobs are keyed by handler id, so re-arming replaces the previous job.
    A single worker thread runs the jobs one at a time, and late jobs
    still run (a late ring is better than none).
    """

    def __init__(
        self,
        dispatch: DispatchCallback | None = None,
        scheduler: BackgroundScheduler | None = None,
    ):
        """Initialize triggers.

        Args:
            dispatch: Callback receiving the handler id when a trigger fires
            scheduler: Scheduler to use, a single-worker one by default
        """
        self._dispatch = dispatch
        self._scheduler = scheduler or BackgroundScheduler(
            executors={"default": ThreadPoolExecutor(1)},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": None,
            },
        )

    def bind(self, dispatch: DispatchCallback) -> None:
        self._dispatch = dispatch

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Trigger scheduler started")

    def shutdown(self, wait: bool = False) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("Trigger scheduler stopped")

    def _fire(self, handler_id: str) -> None:
        if not self._dispatch:
            logger.warning(f"Trigger {handler_id} fired with no dispatcher bound")
            return
        try:
            self._dispatch(handler_id)
        except Exception as e:
            # The next periodic search recovers from a failed invocation
            logger.error(f"Trigger {handler_id} failed: {e}")

    def schedule_repeating(self, interval_hours: float, handler_id: str) -> None:
        self._scheduler.add_job(
            self._fire,
            "interval",
            hours=interval_hours,
            args=[handler_id],
            id=handler_id,
            replace_existing=True,
        )
        logger.debug(f"Repeating trigger {handler_id} every {interval_hours}h")

    def schedule_at(self, at_ms: int, handler_id: str) -> None:
        run_date = max(from_ms(at_ms), datetime.now())
        self._scheduler.add_job(
            self._fire,
            "date",
            run_date=run_date,
            args=[handler_id],
            id=handler_id,
            replace_existing=True,
        )
        logger.debug(f"One-shot trigger {handler_id} at {run_date:%Y-%m-%d %H:%M:%S}")

    def cancel(self, handler_id: str) -> None:
        try:
            self._scheduler.remove_job(handler_id)
            logger.debug(f"Cancelled trigger {handler_id}")
        except JobLookupError:
            pass

    def next_fire_ms(self, handler_id: str) -> int | None:
        """Get the next fire time of a trigger, if scheduled."""
        job = self._scheduler.get_job(handler_id)
        # Jobs added before start() have no next_run_time yet
        next_run_time = getattr(job, "next_run_time", None)
        if next_run_time is None:
            return None
        return to_ms(next_run_time)
