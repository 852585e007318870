"""StaffReady API -- Main Application Entry Point

Creates the FastAPI application, configures CORS middleware, registers
all API route modules under the /api/v1 prefix and, when enabled, starts
the in-process daily job scheduler.

Run with::

    uvicorn staffready.main:app --host 0.0.0.0 --port 8000 --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from staffready.core.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan: startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Startup:
      - Start the daily sweep scheduler when ``scheduler_enabled`` is set.

    Shutdown:
      - Stop the scheduler and dispose of the database engine.
    """
    from staffready.api.deps import engine
    from staffready.jobs.scheduler import start_scheduler, stop_scheduler

    if settings.scheduler_enabled:
        await start_scheduler()
    else:
        logger.info("Job scheduler disabled; sweeps must be triggered externally")

    yield

    await stop_scheduler()
    await engine.dispose()


# ---------------------------------------------------------------------------
# Application instance
# ---------------------------------------------------------------------------

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# CORS middleware
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health():
    """Lightweight health check for load balancers and readiness probes."""
    return {"status": "ok", "version": settings.app_version}


# ---------------------------------------------------------------------------
# Register API route modules
# ---------------------------------------------------------------------------
# Each router already defines its own prefix and tags.  We mount them under
# the shared /api/v1 prefix.
# ---------------------------------------------------------------------------

from staffready.api.routes import auditLogs, checklistItems, clinicians, jobs  # noqa: E402

_prefix = settings.api_v1_prefix

app.include_router(clinicians.router, prefix=_prefix)
app.include_router(checklistItems.router, prefix=_prefix)
app.include_router(auditLogs.router, prefix=_prefix)
app.include_router(jobs.router, prefix=_prefix)
