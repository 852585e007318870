"""
Admin job API routes
====================

  POST /api/v1/admin/jobs/{job_name}/run  -- Run a scheduled sweep now

Lets an external orchestrator (or an admin) trigger the daily sweeps on
demand.  Each job runs in its own session and commits its own work.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, status

from staffready.api.deps import AdminActor, AppClock, Notifier, SessionFactory
from staffready.jobs.scheduler import JOB_NAMES, UnknownJobError, run_job_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/jobs", tags=["Jobs"])


@router.post(
    "/{job_name}/run",
    summary="Run a scheduled job immediately",
    description=f"Known jobs: {', '.join(JOB_NAMES)}.",
)
async def run_job_route(
    job_name: str,
    actor: AdminActor,
    clock: AppClock,
    notifier: Notifier,
    session_factory: SessionFactory,
) -> dict[str, Any]:
    logger.info("Job '%s' triggered manually by %s", job_name, actor.user_id)
    try:
        result = await run_job_now(
            job_name,
            clock=clock,
            notifier=notifier,
            session_factory=session_factory,
        )
    except UnknownJobError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))

    return {"job": job_name, "result": dataclasses.asdict(result)}
