"""
Admin Override Service
======================

Time-boxed, audited admin override of a clinician's Ready-to-Staff status.

Business rules
--------------
* An override lasts at most ``settings.override_max_hours`` (72).  Longer
  requests are clamped silently; callers must read the returned expiry
  rather than assume their requested duration was granted.
* An override can never be set while the clinician has an expired,
  blocking state-license item.  The same rule is re-checked on every
  recomputation, which force-clears any override that ends up masking
  an expired license.
* Setting an override writes the override value to ``Clinician.status``
  immediately.  Clearing it recomputes the status from the items.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from staffready.core.actor import Actor
from staffready.core.clock import Clock
from staffready.core.config import settings
from staffready.core.exceptions import (
    ForbiddenError,
    MissingValueError,
    NotFoundError,
    PolicyViolationError,
)
from staffready.models import Clinician, ClinicianStatus, Role
from staffready.services.auditLogService import (
    EntityType,
    OverrideClearedByAdminDetails,
    OverrideSetDetails,
    record_audit,
)
from staffready.services.clinicianService import get_clinician
from staffready.services.readyToStaffService import (
    clear_override_fields,
    compute_status,
    expired_state_license_items,
    get_clinician_for_update,
    load_clinician_items,
)

logger = logging.getLogger(__name__)


# Values an admin may force
OVERRIDABLE_STATUSES: frozenset[ClinicianStatus] = frozenset({
    ClinicianStatus.READY,
    ClinicianStatus.NOT_READY,
    ClinicianStatus.ONBOARDING,
})


@dataclass(frozen=True)
class OverrideRecord:
    clinician_id: uuid.UUID
    override_active: bool
    override_value: Optional[ClinicianStatus]
    reason: Optional[str]
    expires_at: Optional[datetime]
    granted_hours: Optional[float] = None


def clamp_override_hours(requested_hours: float, max_hours: Optional[int] = None) -> float:
    """Clamp a requested override duration to the configured ceiling."""
    ceiling = settings.override_max_hours if max_hours is None else max_hours
    return min(float(requested_hours), float(ceiling))


async def _get_clinician_or_404(
    db: AsyncSession,
    clinician_id: uuid.UUID,
    organization_id: uuid.UUID,
) -> Clinician:
    clinician = await get_clinician_for_update(db, clinician_id, organization_id)
    if clinician is None:
        raise NotFoundError(f"Clinician not found: {clinician_id}")
    return clinician


def _require_staff(actor: Actor) -> None:
    if actor.role == Role.CLINICIAN:
        raise ForbiddenError("Only organization staff can manage status overrides.")


async def set_override(
    db: AsyncSession,
    clinician_id: uuid.UUID,
    organization_id: uuid.UUID,
    *,
    reason: str,
    expires_in_hours: float,
    actor: Actor,
    clock: Clock,
    value: ClinicianStatus = ClinicianStatus.READY,
    max_hours: Optional[int] = None,
) -> OverrideRecord:
    """Force a clinician's status for a bounded period.

    Raises:
        ForbiddenError: The actor is a clinician.
        NotFoundError: The clinician is not in the actor's organization.
        MissingValueError: ``reason`` is empty.
        PolicyViolationError: Non-positive duration, a value that cannot be
            forced, or an expired blocking state license on file.
    """
    _require_staff(actor)

    if not reason or not reason.strip():
        raise MissingValueError("An override reason is required.")
    if expires_in_hours <= 0:
        raise PolicyViolationError("Override duration must be a positive number of hours.")
    if value not in OVERRIDABLE_STATUSES:
        raise PolicyViolationError(f"Status '{value.value}' cannot be set by override.")

    clinician = await _get_clinician_or_404(db, clinician_id, organization_id)

    items = await load_clinician_items(db, clinician_id, organization_id)
    expired_licenses = expired_state_license_items(items)
    if expired_licenses:
        labels = ", ".join(i.item_definition.label for i in expired_licenses)
        logger.warning(
            "Override refused for clinician %s: expired state license (%s)",
            clinician_id,
            labels,
        )
        raise PolicyViolationError(
            "Cannot set override: clinician has an expired state license "
            f"({labels}). This must be resolved first."
        )

    granted_hours = clamp_override_hours(expires_in_hours, max_hours)
    now = clock.now()
    expires_at = now + timedelta(hours=granted_hours)

    clinician.admin_override_active = True
    clinician.admin_override_value = value
    clinician.admin_override_reason = reason.strip()
    clinician.admin_override_expires_at = expires_at
    if clinician.status != value:
        clinician.status = value
        clinician.status_changed_at = now
    await db.flush()

    await record_audit(
        db,
        organization_id=organization_id,
        entity_type=EntityType.CLINICIAN,
        entity_id=clinician_id,
        clinician_id=clinician_id,
        actor_id=actor.user_id,
        actor_role=actor.role,
        details=OverrideSetDetails(
            override_value=value,
            reason=reason.strip(),
            expires_at=expires_at,
            expires_in_hours=granted_hours,
            requested_hours=float(expires_in_hours),
        ),
    )

    logger.info(
        "Override set: clinician=%s value=%s hours=%.1f (requested %.1f) by=%s",
        clinician_id,
        value.value,
        granted_hours,
        expires_in_hours,
        actor.user_id,
    )

    return OverrideRecord(
        clinician_id=clinician_id,
        override_active=True,
        override_value=value,
        reason=reason.strip(),
        expires_at=expires_at,
        granted_hours=granted_hours,
    )


async def clear_override(
    db: AsyncSession,
    clinician_id: uuid.UUID,
    organization_id: uuid.UUID,
    *,
    actor: Actor,
    clock: Clock,
) -> Optional[ClinicianStatus]:
    """Clear any override unconditionally, then recompute the status.

    Returns:
        The recomputed status (``None`` if the clinician has no items).
    """
    _require_staff(actor)

    clinician = await _get_clinician_or_404(db, clinician_id, organization_id)
    previous_value = clinician.admin_override_value

    await clear_override_fields(
        db,
        clinician,
        OverrideClearedByAdminDetails(previous_override_value=previous_value),
        actor_id=actor.user_id,
        actor_role=actor.role,
    )
    logger.info("Override cleared: clinician=%s by=%s", clinician_id, actor.user_id)

    return await compute_status(db, clinician_id, organization_id, clock=clock)


async def get_override(
    db: AsyncSession,
    clinician_id: uuid.UUID,
    organization_id: uuid.UUID,
) -> Optional[OverrideRecord]:
    """Current override of a clinician, or ``None`` when none is active."""
    clinician = await get_clinician(db, clinician_id, organization_id)
    if not clinician.admin_override_active:
        return None
    return OverrideRecord(
        clinician_id=clinician.id,
        override_active=True,
        override_value=clinician.admin_override_value,
        reason=clinician.admin_override_reason,
        expires_at=clinician.admin_override_expires_at,
    )
