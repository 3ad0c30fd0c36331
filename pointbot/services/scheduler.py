"""
pointbot.services.scheduler — Cron Jobs with Retry-Until-Success
================================================================

Each :class:`CronJob` runs in its own ``asyncio`` task::

    Idle ─► Waiting(next fire) ─► Running ─┬─ success ─► Waiting(next from *now*)
                                           └─ failure ─► sleep(retry_delay) ─► Running (same occurrence)

A failure never skips an occurrence: the job keeps retrying the same fire
time until the action succeeds.  Cron expressions are 5-field and always
evaluated in UTC.

The clock and sleep functions are injectable so the state machine can be
driven deterministically in tests.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from croniter import croniter

from pointbot.database.models import utcnow
from pointbot.engine.calendar import as_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CronJob:
    """A named async action fired on a cron schedule."""

    name: str
    schedule: str
    action: Callable[[], Awaitable[object]]
    retry_delay: float = 300.0

    def __post_init__(self) -> None:
        if not croniter.is_valid(self.schedule):
            raise ValueError(f"Invalid cron expression for job {self.name!r}: {self.schedule!r}")


def next_fire_time(schedule: str, now: datetime) -> datetime:
    """First fire time of *schedule* strictly after *now* (UTC)."""
    return croniter(schedule, as_utc(now)).get_next(datetime)


class JobScheduler:
    """Runs a fixed set of :class:`CronJob` loops until stopped."""

    def __init__(
        self,
        jobs: Iterable[CronJob],
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.jobs = list(jobs)
        self._clock = clock
        self._sleep = sleep
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    async def start(self) -> None:
        """Spawn one task per job.  Calling twice is a no-op."""
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self.run_job(job), name=f"cron:{job.name}")
            for job in self.jobs
        ]
        logger.info("Scheduler started with %d job(s)", len(self._tasks))

    async def stop(self) -> None:
        """Cancel every job task and wait for them to finish."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Scheduler stopped")

    async def run_job(self, job: CronJob) -> None:
        """Loop forever: wait for the next occurrence, run it to success."""
        last_fire: datetime | None = None
        while True:
            now = as_utc(self._clock())
            # Never re-select an occurrence that already ran, even if the
            # clock reads slightly behind it after a fast run.
            if last_fire is not None and now < last_fire:
                now = last_fire
            fire_at = next_fire_time(job.schedule, now)
            delay = (fire_at - as_utc(self._clock())).total_seconds()
            logger.info("Job %s next fires at %s", job.name, fire_at.isoformat())
            if delay > 0:
                await self._sleep(delay)
            await self.run_occurrence(job, fire_at)
            last_fire = fire_at

    async def run_occurrence(self, job: CronJob, fire_at: datetime | None = None) -> int:
        """Run *job* once, retrying after ``retry_delay`` until it succeeds.

        Returns the number of attempts it took.
        """
        label = fire_at.isoformat() if fire_at else "ad-hoc"
        attempt = 0
        while True:
            attempt += 1
            try:
                await job.action()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Job %s (%s) failed on attempt %d — retrying in %.0fs",
                    job.name, label, attempt, job.retry_delay,
                )
                await self._sleep(job.retry_delay)
                continue
            logger.info("Job %s (%s) succeeded after %d attempt(s)", job.name, label, attempt)
            return attempt
