"""
Clinician onboarding and dashboard reads.

Onboarding creates the clinician together with one ``not_started`` item per
enabled definition of the chosen template.  Both are written with a single
flush inside the caller's transaction, so either the clinician exists with
its full item set or not at all.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from staffready.core.actor import Actor
from staffready.core.clock import Clock, as_utc
from staffready.core.exceptions import ForbiddenError, MissingValueError, NotFoundError
from staffready.models import (
    ChecklistItemDefinition,
    ChecklistItemStatus,
    ChecklistTemplate,
    Clinician,
    ClinicianChecklistItem,
    ClinicianStatus,
    Discipline,
)
from staffready.services.auditLogService import (
    ClinicianOnboardedDetails,
    EntityType,
    record_audit,
)

logger = logging.getLogger(__name__)


@dataclass
class ClinicianProfile:
    first_name: str
    last_name: str
    email: str
    discipline: Discipline
    phone: Optional[str] = None
    npi: Optional[str] = None


@dataclass(frozen=True)
class ExpiringItem:
    item_id: uuid.UUID
    clinician_id: uuid.UUID
    clinician_name: str
    clinician_status: ClinicianStatus
    label: str
    section: str
    blocking: bool
    status: ChecklistItemStatus
    expires_at: Optional[datetime]
    days_remaining: Optional[int]


async def _get_template(
    db: AsyncSession,
    template_id: uuid.UUID,
    organization_id: uuid.UUID,
) -> ChecklistTemplate:
    """A template owned by the organization or global, else NotFoundError."""
    stmt = select(ChecklistTemplate).where(
        ChecklistTemplate.id == template_id,
        or_(
            ChecklistTemplate.organization_id == organization_id,
            ChecklistTemplate.organization_id.is_(None),
        ),
    )
    result = await db.execute(stmt)
    template = result.scalar_one_or_none()
    if template is None:
        raise NotFoundError(f"Checklist template not found: {template_id}")
    return template


async def _get_enabled_definitions(
    db: AsyncSession,
    template_id: uuid.UUID,
) -> Sequence[ChecklistItemDefinition]:
    stmt = (
        select(ChecklistItemDefinition)
        .where(
            ChecklistItemDefinition.template_id == template_id,
            ChecklistItemDefinition.enabled.is_(True),
        )
        .order_by(ChecklistItemDefinition.sort_order)
    )
    result = await db.execute(stmt)
    return result.scalars().all()


async def onboard_clinician(
    db: AsyncSession,
    template_id: uuid.UUID,
    profile: ClinicianProfile,
    actor: Actor,
) -> Clinician:
    """Create a clinician and instantiate their checklist from a template.

    Raises:
        ForbiddenError: The actor is a clinician.
        NotFoundError: Template not visible to the actor's organization.
        MissingValueError: A required profile field is empty, or the
            template has no enabled item definitions.
    """
    if actor.is_clinician:
        raise ForbiddenError("Only organization staff can onboard clinicians.")
    for field_name in ("first_name", "last_name", "email"):
        if not (getattr(profile, field_name) or "").strip():
            raise MissingValueError(f"{field_name} is required.")

    organization_id = actor.organization_id
    template = await _get_template(db, template_id, organization_id)
    definitions = await _get_enabled_definitions(db, template.id)
    if not definitions:
        raise MissingValueError("Template has no enabled item definitions.")

    clinician = Clinician(
        id=uuid.uuid4(),
        organization_id=organization_id,
        template_id=template.id,
        first_name=profile.first_name.strip(),
        last_name=profile.last_name.strip(),
        email=profile.email.strip(),
        phone=profile.phone or None,
        discipline=profile.discipline,
        npi=profile.npi or None,
        status=ClinicianStatus.ONBOARDING,
    )
    db.add(clinician)
    for definition in definitions:
        db.add(
            ClinicianChecklistItem(
                organization_id=organization_id,
                clinician_id=clinician.id,
                item_definition_id=definition.id,
                item_definition=definition,
                status=ChecklistItemStatus.NOT_STARTED,
            )
        )
    await db.flush()

    await record_audit(
        db,
        organization_id=organization_id,
        entity_type=EntityType.CLINICIAN,
        entity_id=clinician.id,
        clinician_id=clinician.id,
        actor_id=actor.user_id,
        actor_role=actor.role,
        details=ClinicianOnboardedDetails(
            name=clinician.full_name,
            discipline=profile.discipline.value,
            template=template.name,
            item_count=len(definitions),
        ),
    )

    logger.info(
        "Clinician onboarded: id=%s, template=%s, items=%d, by=%s",
        clinician.id,
        template.name,
        len(definitions),
        actor.user_id,
    )
    return clinician


async def get_clinician(
    db: AsyncSession,
    clinician_id: uuid.UUID,
    organization_id: uuid.UUID,
) -> Clinician:
    """Fetch a clinician of the organization or raise NotFoundError."""
    stmt = select(Clinician).where(
        Clinician.id == clinician_id,
        Clinician.organization_id == organization_id,
    )
    result = await db.execute(stmt)
    clinician = result.scalar_one_or_none()
    if clinician is None:
        raise NotFoundError(f"Clinician not found: {clinician_id}")
    return clinician


async def get_status_counts(
    db: AsyncSession,
    organization_id: uuid.UUID,
) -> dict[str, int]:
    """Clinician counts per status plus a ``total`` for the dashboard KPIs."""
    stmt = (
        select(Clinician.status, func.count(Clinician.id))
        .where(Clinician.organization_id == organization_id)
        .group_by(Clinician.status)
    )
    result = await db.execute(stmt)
    counts = {status.value: 0 for status in ClinicianStatus}
    for status, count in result.all():
        counts[ClinicianStatus(status).value] = count
    counts["total"] = sum(counts.values())
    return counts


def _days_remaining(expires_at: Optional[datetime], now: datetime) -> Optional[int]:
    if expires_at is None:
        return None
    return math.ceil((as_utc(expires_at) - now).total_seconds() / 86400)


async def get_expiring_items(
    db: AsyncSession,
    organization_id: uuid.UUID,
    *,
    clock: Clock,
    days_ahead: int = 30,
    limit: int = 20,
) -> list[ExpiringItem]:
    """Approved items expiring within ``days_ahead`` days, then expired ones.

    Both groups are ordered by expiry and each is capped at ``limit``.
    """
    now = clock.now()
    cutoff = now + timedelta(days=days_ahead)

    base = (
        select(ClinicianChecklistItem, Clinician)
        .join(Clinician, ClinicianChecklistItem.clinician_id == Clinician.id)
        .where(ClinicianChecklistItem.organization_id == organization_id)
        .order_by(ClinicianChecklistItem.expires_at)
        .limit(limit)
    )
    upcoming_stmt = base.where(
        ClinicianChecklistItem.status == ChecklistItemStatus.APPROVED,
        ClinicianChecklistItem.expires_at > now,
        ClinicianChecklistItem.expires_at <= cutoff,
    )
    expired_stmt = base.where(ClinicianChecklistItem.status == ChecklistItemStatus.EXPIRED)

    rows = []
    for stmt in (upcoming_stmt, expired_stmt):
        result = await db.execute(stmt)
        rows.extend(result.unique().all())

    return [
        ExpiringItem(
            item_id=item.id,
            clinician_id=clinician.id,
            clinician_name=clinician.full_name,
            clinician_status=clinician.status,
            label=item.item_definition.label,
            section=item.item_definition.section,
            blocking=item.item_definition.blocking,
            status=item.status,
            expires_at=item.expires_at,
            days_remaining=_days_remaining(item.expires_at, now),
        )
        for item, clinician in rows
    ]
