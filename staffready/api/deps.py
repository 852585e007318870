"""
Shared FastAPI dependencies for the StaffReady backend.

Provides the async database session dependency used by all route handlers,
the acting user resolved from gateway headers, and the injectable
collaborators of the services (clock, notifier, receipt store).
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from staffready.core.actor import Actor
from staffready.core.clock import Clock, system_clock
from staffready.core.config import settings
from staffready.models import ADMIN_ROLES, Role
from staffready.services.notificationService import ExpirationNotifier, build_notifier
from staffready.services.storageService import LocalReceiptStore, ReceiptStore

# ---------------------------------------------------------------------------
# Async engine & session factory
# ---------------------------------------------------------------------------
# The engine is created once at module import time.  The session factory
# produces lightweight ``AsyncSession`` instances that are scoped to a single
# request via the ``get_db`` dependency below, or to one job run.
# ---------------------------------------------------------------------------

engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session that commits when the request
    succeeds and rolls back otherwise.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


DBSession = Annotated[AsyncSession, Depends(get_db)]


# ---------------------------------------------------------------------------
# Request metadata dependencies
# ---------------------------------------------------------------------------

def get_client_ip(request: Request) -> str | None:
    """Extract the client IP address from the request.

    Checks the ``X-Forwarded-For`` header first (set by reverse proxies /
    load balancers), then falls back to the direct client host.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain a chain: "client, proxy1, proxy2"
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


ClientIP = Annotated[Optional[str], Depends(get_client_ip)]


# ---------------------------------------------------------------------------
# Acting user
# ---------------------------------------------------------------------------
# Authentication is done by the gateway in front of this service, which
# forwards the verified identity in these headers.
# ---------------------------------------------------------------------------

def get_current_actor(
    x_actor_id: Annotated[Optional[str], Header()] = None,
    x_organization_id: Annotated[Optional[str], Header()] = None,
    x_actor_role: Annotated[Optional[str], Header()] = None,
) -> Actor:
    """Build the ``Actor`` from the gateway identity headers (401 if absent)."""
    if not (x_actor_id and x_organization_id and x_actor_role):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing actor identity headers.",
        )
    try:
        return Actor(
            user_id=uuid.UUID(x_actor_id),
            organization_id=uuid.UUID(x_organization_id),
            role=Role(x_actor_role),
        )
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed actor identity headers.",
        )


CurrentActor = Annotated[Actor, Depends(get_current_actor)]


def require_admin(actor: CurrentActor) -> Actor:
    """Restrict a route to admins and super admins."""
    if actor.role not in ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required.",
        )
    return actor


AdminActor = Annotated[Actor, Depends(require_admin)]


# ---------------------------------------------------------------------------
# Injectable collaborators
# ---------------------------------------------------------------------------

def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that outlives the request session (job runs)."""
    return async_session_factory


def get_clock() -> Clock:
    return system_clock


def get_notifier() -> ExpirationNotifier:
    return build_notifier()


def get_receipt_store() -> ReceiptStore:
    return LocalReceiptStore()


SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
AppClock = Annotated[Clock, Depends(get_clock)]
Notifier = Annotated[ExpirationNotifier, Depends(get_notifier)]
Receipts = Annotated[ReceiptStore, Depends(get_receipt_store)]
