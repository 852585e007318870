"""
Daily Job Scheduler
===================

In-process background task that fires the nightly sweeps once per UTC day:

* ``expiration`` (item + override expiration) at ``settings.expiration_job_hour``
* ``reminders`` at ``settings.reminder_job_hour``

Usage (integrated into the FastAPI app lifespan)::

    from staffready.jobs.scheduler import start_scheduler, stop_scheduler

    await start_scheduler()
    ...
    await stop_scheduler()

The scheduler only decides *when* to run.  ``run_job_now`` is the entry point
that actually runs a job and is shared with the admin "run now" route and
any external orchestrator.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, Optional

from staffready.core.clock import Clock, system_clock
from staffready.core.config import settings
from staffready.jobs.expirationJob import (
    run_daily_expiration,
    run_item_expiration,
    run_override_expiration,
)
from staffready.jobs.reminderJob import run_expiration_reminders
from staffready.services.notificationService import ExpirationNotifier, build_notifier

logger = logging.getLogger(__name__)

JOB_NAMES: tuple[str, ...] = (
    "expiration",
    "item_expiration",
    "override_expiration",
    "reminders",
)

# Internal state
_scheduler_task: asyncio.Task | None = None
_running: bool = False
_last_run: dict[str, date] = {}


class UnknownJobError(ValueError):
    """Raised for a job name the scheduler does not know."""


async def run_job_now(
    name: str,
    *,
    clock: Clock = system_clock,
    notifier: Optional[ExpirationNotifier] = None,
    session_factory: Any = None,
) -> Any:
    """Run one job immediately in its own session and return its result."""
    if name not in JOB_NAMES:
        raise UnknownJobError(f"Unknown job '{name}'. Expected one of: {', '.join(JOB_NAMES)}")

    if session_factory is None:
        from staffready.api.deps import async_session_factory as session_factory

    logger.info("Running job '%s'", name)
    async with session_factory() as db:
        if name == "expiration":
            return await run_daily_expiration(db, clock=clock)
        if name == "item_expiration":
            return await run_item_expiration(db, clock=clock)
        if name == "override_expiration":
            return await run_override_expiration(db, clock=clock)
        return await run_expiration_reminders(
            db, clock=clock, notifier=notifier or build_notifier()
        )


def due_jobs(clock: Clock, last_run: dict[str, date]) -> list[str]:
    """Jobs whose daily hour has been reached and that have not run today."""
    now = clock.now()
    schedule = {
        "expiration": settings.expiration_job_hour,
        "reminders": settings.reminder_job_hour,
    }
    return [
        name
        for name, hour in schedule.items()
        if now.hour >= hour and last_run.get(name) != now.date()
    ]


async def _tick(clock: Clock) -> None:
    for name in due_jobs(clock, _last_run):
        _last_run[name] = clock.today()
        try:
            await run_job_now(name, clock=clock)
        except Exception:
            logger.exception("Scheduled job '%s' failed", name)


async def _run_scheduler(clock: Clock) -> None:
    """Main loop: check for due jobs every ``scheduler_poll_seconds``."""
    logger.info("Job scheduler started (poll=%ds)", settings.scheduler_poll_seconds)
    while _running:
        await _tick(clock)
        await asyncio.sleep(settings.scheduler_poll_seconds)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def start_scheduler(clock: Clock = system_clock) -> None:
    """Start the background scheduler task."""
    global _scheduler_task, _running

    if _scheduler_task is not None:
        logger.warning("Job scheduler is already running")
        return

    _running = True
    _scheduler_task = asyncio.create_task(_run_scheduler(clock))


async def stop_scheduler() -> None:
    """Stop the background scheduler task."""
    global _scheduler_task, _running

    _running = False

    if _scheduler_task is not None:
        _scheduler_task.cancel()
        try:
            await _scheduler_task
        except asyncio.CancelledError:
            pass
        _scheduler_task = None
        logger.info("Job scheduler stopped")
