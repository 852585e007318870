"""
E2E test fixtures for StaffReady.

Provides:
- A fresh in-memory SQLite database per test (async, aiosqlite)
- Seed data: an organization with two admins and a recruiter, a PT template
  with a mix of blocking / non-blocking definitions, and a helper that
  onboards clinicians directly through the ORM
- An in-process FastAPI app with the DB, clock, notifier, receipt store and
  job session factory dependencies overridden
- httpx AsyncClient wired via ASGI transport (no network needed)
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

from staffready.core.actor import Actor
from staffready.core.clock import FixedClock
from staffready.models import (
    AuditLog,
    Base,
    ChecklistItemDefinition,
    ChecklistItemStatus,
    ChecklistItemType,
    ChecklistTemplate,
    Clinician,
    ClinicianChecklistItem,
    ClinicianStatus,
    Discipline,
    Organization,
    Role,
    User,
)
from tests.conftest import NOW, InMemoryReceiptStore, RecordingNotifier


@compiles(JSONB, "sqlite")
def compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


@compiles(UUID, "sqlite")
def compile_uuid_sqlite(type_, compiler, **kw):
    return "CHAR(32)"


# ---------------------------------------------------------------------------
# Test IDs (stable across tests so cross-references work)
# ---------------------------------------------------------------------------

ORG_ID = uuid.UUID("aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa")
OTHER_ORG_ID = uuid.UUID("bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb")

ADMIN_USER_ID = uuid.UUID("dddddddd-dddd-dddd-dddd-dddddddddddd")
SUPER_ADMIN_USER_ID = uuid.UUID("eeeeeeee-eeee-eeee-eeee-eeeeeeeeeeee")
RECRUITER_USER_ID = uuid.UUID("ffffffff-ffff-ffff-ffff-ffffffffffff")
CLINICIAN_USER_ID = uuid.UUID("cccccccc-cccc-cccc-cccc-cccccccccccc")

ADMIN_EMAIL = "admin@test.staffready.app"
SUPER_ADMIN_EMAIL = "owner@test.staffready.app"

TEMPLATE_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")

DEF_LICENSE_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
DEF_CPR_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")
DEF_HANDBOOK_ID = uuid.UUID("44444444-4444-4444-4444-444444444444")
DEF_REFERENCES_ID = uuid.UUID("55555555-5555-5555-5555-555555555555")
DEF_BACKGROUND_ID = uuid.UUID("66666666-6666-6666-6666-666666666666")
DEF_RETIRED_ID = uuid.UUID("77777777-7777-7777-7777-777777777777")

ADMIN_ACTOR = Actor(user_id=ADMIN_USER_ID, organization_id=ORG_ID, role=Role.ADMIN)
CLINICIAN_ACTOR = Actor(user_id=CLINICIAN_USER_ID, organization_id=ORG_ID, role=Role.CLINICIAN)
OTHER_ORG_ADMIN = Actor(user_id=uuid.uuid4(), organization_id=OTHER_ORG_ID, role=Role.ADMIN)


def actor_headers(actor: Actor) -> dict[str, str]:
    return {
        "X-Actor-Id": str(actor.user_id),
        "X-Organization-Id": str(actor.organization_id),
        "X-Actor-Role": actor.role.value,
    }


# ---------------------------------------------------------------------------
# Async engine + session (fresh in-memory SQLite per test)
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

async def _seed_data(db: AsyncSession) -> None:
    """Insert the organizations, staff and the PT template."""
    db.add_all([
        Organization(id=ORG_ID, name="Sunrise Home Health"),
        Organization(id=OTHER_ORG_ID, name="Elsewhere Care"),
    ])
    await db.flush()

    db.add_all([
        User(id=ADMIN_USER_ID, organization_id=ORG_ID, email=ADMIN_EMAIL, name="Ada Admin", role=Role.ADMIN),
        User(
            id=SUPER_ADMIN_USER_ID,
            organization_id=ORG_ID,
            email=SUPER_ADMIN_EMAIL,
            name="Owen Owner",
            role=Role.SUPER_ADMIN,
        ),
        User(
            id=RECRUITER_USER_ID,
            organization_id=ORG_ID,
            email="recruiter@test.staffready.app",
            name="Rae Recruiter",
            role=Role.RECRUITER,
        ),
        User(
            id=CLINICIAN_USER_ID,
            organization_id=ORG_ID,
            email="clinician-user@test.staffready.app",
            role=Role.CLINICIAN,
        ),
        User(organization_id=OTHER_ORG_ID, email="admin@elsewhere.example", role=Role.ADMIN),
    ])

    db.add(
        ChecklistTemplate(
            id=TEMPLATE_ID,
            organization_id=ORG_ID,
            name="PT Onboarding",
            discipline=Discipline.PT,
        )
    )
    await db.flush()

    db.add_all([
        ChecklistItemDefinition(
            id=DEF_LICENSE_ID,
            template_id=TEMPLATE_ID,
            label="State PT License",
            section="Licensure",
            type=ChecklistItemType.FILE_UPLOAD,
            required=True,
            blocking=True,
            has_expiration=True,
            sort_order=1,
        ),
        ChecklistItemDefinition(
            id=DEF_CPR_ID,
            template_id=TEMPLATE_ID,
            label="CPR Certification",
            section="Certifications",
            type=ChecklistItemType.FILE_UPLOAD,
            required=True,
            blocking=True,
            has_expiration=True,
            sort_order=2,
        ),
        ChecklistItemDefinition(
            id=DEF_HANDBOOK_ID,
            template_id=TEMPLATE_ID,
            label="Employee Handbook Acknowledgement",
            section="Agreements",
            type=ChecklistItemType.E_SIGNATURE,
            required=True,
            blocking=True,
            sort_order=3,
            linked_document_path="documents/handbook-2025.pdf",
            config_json={"agreement_text": "I have read the employee handbook."},
        ),
        ChecklistItemDefinition(
            id=DEF_REFERENCES_ID,
            template_id=TEMPLATE_ID,
            label="Professional References",
            section="Employment",
            type=ChecklistItemType.TEXT,
            required=False,
            blocking=False,
            sort_order=4,
        ),
        ChecklistItemDefinition(
            id=DEF_BACKGROUND_ID,
            template_id=TEMPLATE_ID,
            label="Background Check",
            section="Compliance",
            type=ChecklistItemType.ADMIN_STATUS,
            required=True,
            blocking=False,
            admin_only=True,
            sort_order=5,
        ),
        ChecklistItemDefinition(
            id=DEF_RETIRED_ID,
            template_id=TEMPLATE_ID,
            label="Retired Form",
            section="Compliance",
            type=ChecklistItemType.TEXT,
            required=False,
            blocking=False,
            enabled=False,
            sort_order=99,
        ),
    ])
    await db.commit()


@pytest_asyncio.fixture
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    """A database session with seed data already committed."""
    await _seed_data(db_session)
    return db_session


# ---------------------------------------------------------------------------
# Clinician helpers
# ---------------------------------------------------------------------------

async def create_clinician(
    db: AsyncSession,
    *,
    first_name: str = "Dana",
    last_name: str = "Reyes",
    email: Optional[str] = None,
    statuses: Optional[dict[uuid.UUID, ChecklistItemStatus]] = None,
    expires_at: Optional[dict[uuid.UUID, datetime]] = None,
    status: ClinicianStatus = ClinicianStatus.ONBOARDING,
    organization_id: uuid.UUID = ORG_ID,
) -> Clinician:
    """Create a clinician with one item per enabled seed definition.

    ``statuses`` and ``expires_at`` override the per-definition defaults
    (``not_started``, no expiry).  The result is committed.
    """
    statuses = statuses or {}
    expires_at = expires_at or {}

    clinician = Clinician(
        id=uuid.uuid4(),
        organization_id=organization_id,
        template_id=TEMPLATE_ID,
        first_name=first_name,
        last_name=last_name,
        email=email or f"{first_name.lower()}.{last_name.lower()}@example.com",
        discipline=Discipline.PT,
        status=status,
    )
    db.add(clinician)

    definitions = (
        await db.execute(
            select(ChecklistItemDefinition).where(
                ChecklistItemDefinition.template_id == TEMPLATE_ID,
                ChecklistItemDefinition.enabled.is_(True),
            )
        )
    ).scalars().all()
    for definition in definitions:
        db.add(
            ClinicianChecklistItem(
                id=uuid.uuid4(),
                organization_id=organization_id,
                clinician_id=clinician.id,
                item_definition_id=definition.id,
                item_definition=definition,
                status=statuses.get(definition.id, ChecklistItemStatus.NOT_STARTED),
                expires_at=expires_at.get(definition.id),
            )
        )
    await db.commit()
    return clinician


def all_blocking_approved() -> dict[uuid.UUID, ChecklistItemStatus]:
    return {
        DEF_LICENSE_ID: ChecklistItemStatus.APPROVED,
        DEF_CPR_ID: ChecklistItemStatus.APPROVED,
        DEF_HANDBOOK_ID: ChecklistItemStatus.APPROVED,
        DEF_REFERENCES_ID: ChecklistItemStatus.APPROVED,
        DEF_BACKGROUND_ID: ChecklistItemStatus.APPROVED,
    }


async def get_item(
    db: AsyncSession,
    clinician_id: uuid.UUID,
    definition_id: uuid.UUID,
) -> ClinicianChecklistItem:
    stmt = (
        select(ClinicianChecklistItem)
        .where(
            ClinicianChecklistItem.clinician_id == clinician_id,
            ClinicianChecklistItem.item_definition_id == definition_id,
        )
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).unique().scalar_one()


async def reload_clinician(db: AsyncSession, clinician_id: uuid.UUID) -> Clinician:
    stmt = (
        select(Clinician)
        .where(Clinician.id == clinician_id)
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one()


async def audit_actions(db: AsyncSession, clinician_id: uuid.UUID) -> list[str]:
    """Audit actions for a clinician in insertion order."""
    stmt = select(AuditLog.action).where(AuditLog.clinician_id == clinician_id)
    return [row[0] for row in (await db.execute(stmt)).all()]


def days_from_now(days: float) -> datetime:
    return NOW + timedelta(days=days)


# ---------------------------------------------------------------------------
# FastAPI test application
# ---------------------------------------------------------------------------

def _create_test_app(
    db_session_override: AsyncSession,
    *,
    clock: FixedClock,
    notifier: RecordingNotifier,
    receipt_store: InMemoryReceiptStore,
    session_factory: async_sessionmaker[AsyncSession],
):
    """Build the FastAPI app with every collaborator dependency overridden."""
    from fastapi import FastAPI

    from staffready.api.deps import (
        get_clock,
        get_db,
        get_notifier,
        get_receipt_store,
        get_session_factory,
    )
    from staffready.api.routes.auditLogs import router as audit_router
    from staffready.api.routes.checklistItems import router as items_router
    from staffready.api.routes.clinicians import router as clinicians_router
    from staffready.api.routes.jobs import router as jobs_router

    app = FastAPI(title="StaffReady Test")

    async def _override_get_db():
        try:
            yield db_session_override
            await db_session_override.commit()
        except Exception:
            await db_session_override.rollback()
            raise

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_receipt_store] = lambda: receipt_store
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    app.include_router(clinicians_router, prefix="/api/v1")
    app.include_router(items_router, prefix="/api/v1")
    app.include_router(audit_router, prefix="/api/v1")
    app.include_router(jobs_router, prefix="/api/v1")
    return app


@pytest.fixture
def api_notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def api_receipts() -> InMemoryReceiptStore:
    return InMemoryReceiptStore()


@pytest_asyncio.fixture
async def client(
    seeded_db: AsyncSession,
    clock: FixedClock,
    api_notifier: RecordingNotifier,
    api_receipts: InMemoryReceiptStore,
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient connected to the test app via ASGI transport."""
    app = _create_test_app(
        seeded_db,
        clock=clock,
        notifier=api_notifier,
        receipt_store=api_receipts,
        session_factory=session_factory,
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
