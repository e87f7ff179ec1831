"""Reconciliation Scheduler

Runs named jobs on daily, weekly or monthly wall-clock schedules (UTC).
Time is read through an injectable Clock. The background loop calls
``start_pending()``, which launches every due job as its own task so a long
job never holds back the others; ``run_pending()`` does the same but waits
for the results, so tests can drive the scheduler by advancing a frozen clock.

A job that is still running is never started a second time. ``stop()``
waits for in-flight jobs to finish rather than cancelling them.
"""

import asyncio
import logging
from calendar import monthrange
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, List, Optional
from libs.result import Result, Return, Error
from src.app.services.clock import Clock
from src.app.use_cases.subscription.dtos import JobRunResultDTO
from src.app.use_cases.subscription.errors import ErrorCode

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


@dataclass(frozen=True)
class Schedule:
    """
    Wall-clock schedule

    period: "daily", "weekly" (on weekday, Monday=0) or "monthly" (on day)
    """

    period: str
    hour: int = 0
    minute: int = 0
    weekday: int = 0
    day: int = 1

    @classmethod
    def daily(cls, hour: int, minute: int = 0) -> "Schedule":
        return cls("daily", hour, minute)

    @classmethod
    def weekly(cls, weekday: int, hour: int, minute: int = 0) -> "Schedule":
        return cls("weekly", hour, minute, weekday=weekday)

    @classmethod
    def monthly(cls, day: int, hour: int, minute: int = 0) -> "Schedule":
        return cls("monthly", hour, minute, day=day)

    def next_after(self, moment: datetime) -> datetime:
        """First fire time strictly after moment"""
        at = moment.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)

        if self.period == "daily":
            return at if at > moment else at + timedelta(days=1)

        if self.period == "weekly":
            at += timedelta(days=(self.weekday - moment.weekday()) % 7)
            return at if at > moment else at + timedelta(days=7)

        year, month = moment.year, moment.month
        while True:
            day = min(self.day, monthrange(year, month)[1])
            candidate = at.replace(year=year, month=month, day=day)
            if candidate > moment:
                return candidate
            year, month = (year + 1, 1) if month == 12 else (year, month + 1)

    def describe(self) -> str:
        clock = f"{self.hour:02d}:{self.minute:02d}"
        if self.period == "daily":
            return f"Daily at {clock}"
        if self.period == "weekly":
            return f"Weekly on {WEEKDAY_NAMES[self.weekday]} at {clock}"
        return f"Monthly on day {self.day} at {clock}"


@dataclass
class ScheduledJob:
    name: str
    schedule: Schedule
    description: str
    run: Callable[[], Awaitable[JobRunResultDTO]]
    running: bool = False
    next_run: Optional[datetime] = None
    last_run: Optional[datetime] = None
    last_result: Optional[JobRunResultDTO] = None
    last_error: Optional[str] = None


@dataclass
class _LoopState:
    task: Optional[asyncio.Task] = None
    in_flight: Dict[str, asyncio.Task] = field(default_factory=dict)


class ReconciliationScheduler:
    """
    Named periodic jobs with start/stop/trigger/status

    Usage:
        scheduler = ReconciliationScheduler(clock, jobs)
        scheduler.start()
        ...
        await scheduler.trigger("expiryCheck")
        await scheduler.stop()
    """

    def __init__(self, clock: Clock, jobs: List[ScheduledJob], poll_interval_seconds: float = 30.0):
        self.clock = clock
        self.jobs: Dict[str, ScheduledJob] = {job.name: job for job in jobs}
        self.poll_interval_seconds = poll_interval_seconds
        self._state = _LoopState()

    @property
    def is_started(self) -> bool:
        return self._state.task is not None and not self._state.task.done()

    def start(self) -> None:
        if self.is_started:
            logger.info("Scheduler already running")
            return
        self._plan(self.clock.now(), only_unplanned=False)
        self._state.task = asyncio.create_task(self._loop())
        for job in self.jobs.values():
            logger.info(f"Scheduled {job.name}: {job.schedule.describe()} (next run {job.next_run.isoformat()})")

    async def stop(self) -> None:
        task = self._state.task
        self._state.task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        in_flight = list(self._state.in_flight.values())
        if in_flight:
            logger.info(f"Waiting for {len(in_flight)} running job(s) to finish")
            await asyncio.gather(*in_flight, return_exceptions=True)
        logger.info("Scheduler stopped")

    def start_pending(self) -> List[str]:
        """Start every due job in the background; returns the names started"""
        due = self._due(self.clock.now())
        for job in due:
            self._launch(job)
        return [job.name for job in due]

    async def run_pending(self) -> List[JobRunResultDTO]:
        """Run every due job and wait for them; returns the results of those that completed"""
        due = self._due(self.clock.now())
        results = await asyncio.gather(*(self._run(job) for job in due))
        return [result for result in results if result is not None]

    async def trigger(self, name: str) -> Result[JobRunResultDTO]:
        job = self.jobs.get(name)
        if job is None:
            return Return.err(
                Error(
                    code=ErrorCode.UNKNOWN_JOB,
                    message=f"Unknown job: {name}",
                    reason=f"Available jobs: {', '.join(self.jobs)}",
                )
            )
        if job.running:
            return Return.err(
                Error(code=ErrorCode.JOB_ALREADY_RUNNING, message=f"Job {name} is already running")
            )

        logger.info(f"Manually triggering {name}")
        result = await self._run(job)
        if result is None:
            return Return.err(
                Error(code=ErrorCode.JOB_FAILED, message=f"Job {name} failed", reason=job.last_error)
            )
        return Return.ok(result)

    def status(self) -> Dict[str, dict]:
        return {
            job.name: {
                "running": self.is_started,
                "executing": job.running,
                "schedule": job.schedule.describe(),
                "description": job.description,
                "next_run": job.next_run,
                "last_run": job.last_run,
                "last_error": job.last_error,
            }
            for job in self.jobs.values()
        }

    def _plan(self, now: datetime, only_unplanned: bool) -> None:
        for job in self.jobs.values():
            if job.next_run is None or not only_unplanned:
                job.next_run = job.schedule.next_after(now)

    def _due(self, now: datetime) -> List[ScheduledJob]:
        self._plan(now, only_unplanned=True)
        due = []
        for job in self.jobs.values():
            if job.next_run is None or job.next_run > now:
                continue
            job.next_run = job.schedule.next_after(now)
            if job.running:
                logger.warning(f"Skipping scheduled run of {job.name}: previous run still in progress")
                continue
            due.append(job)
        return due

    def _launch(self, job: ScheduledJob) -> asyncio.Future:
        job.running = True
        job.last_run = self.clock.now()
        task = asyncio.ensure_future(self._execute(job))
        self._state.in_flight[job.name] = task
        task.add_done_callback(lambda _: self._state.in_flight.pop(job.name, None))
        return task

    async def _run(self, job: ScheduledJob) -> Optional[JobRunResultDTO]:
        # a cancelled caller (loop or request) does not cancel the job itself
        return await asyncio.shield(self._launch(job))

    async def _execute(self, job: ScheduledJob) -> Optional[JobRunResultDTO]:
        try:
            result = await job.run()
        except Exception as e:
            logger.exception(f"Job {job.name} failed: {e}")
            job.last_error = str(e)
            return None
        finally:
            job.running = False

        job.last_result = result
        job.last_error = None
        return result

    async def _loop(self) -> None:
        while True:
            self.start_pending()
            now = self.clock.now()
            upcoming = [job.next_run for job in self.jobs.values() if job.next_run is not None]
            delay = self.poll_interval_seconds
            if upcoming:
                delay = max(0.0, min(delay, (min(upcoming) - now).total_seconds()))
            await asyncio.sleep(delay)
