"""
Ready-to-Staff Status Engine
============================

Derives a clinician's aggregate status from their checklist items and the
admin override fields, and persists it only when it changes.

Rules (evaluated in order):

1. ``ready``      -- every blocking item is ``approved``, none is ``expired``,
                     and there is at least one blocking item.
2. ``onboarding`` -- otherwise, when any item (blocking or not) is still
                     ``not_started`` and no blocking item is ``expired``.
3. ``not_ready``  -- everything else.

Override resolution runs after the base computation:

* an active override whose expiry has passed is cleared
  (audit ``override_expired``) and the base status applies;
* an active override on a clinician with an expired, blocking
  state-license item is force-cleared (audit ``expired_license_detected``)
  and the base status applies -- no override may ever mask an expired
  license;
* otherwise an active override's stored value wins.

``compute_status`` is idempotent: when nothing changed since the last call
it performs no write and logs no audit entry, so it is safe to call after
every item mutation and from the nightly sweeps.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staffready.core.clock import Clock, as_utc
from staffready.core.config import settings
from staffready.models import (
    ChecklistItemStatus,
    Clinician,
    ClinicianChecklistItem,
    ClinicianStatus,
    Role,
)
from staffready.services.auditLogService import (
    EntityType,
    ExpiredLicenseDetectedDetails,
    OverrideClearedByAdminDetails,
    OverrideExpiredDetails,
    StatusRecomputedDetails,
    record_audit,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Decision types
# ---------------------------------------------------------------------------

class _DefinitionView(Protocol):
    label: str
    blocking: bool


class _ItemView(Protocol):
    status: ChecklistItemStatus
    item_definition: _DefinitionView


class OverrideResolution(str, enum.Enum):
    NONE = "none"
    APPLIED = "applied"
    CLEARED_EXPIRED = "cleared_expired"
    CLEARED_EXPIRED_LICENSE = "cleared_expired_license"


@dataclass(frozen=True)
class OverrideState:
    """Snapshot of a clinician's override fields."""
    active: bool = False
    value: Optional[ClinicianStatus] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_clinician(cls, clinician: Clinician) -> "OverrideState":
        return cls(
            active=bool(clinician.admin_override_active),
            value=clinician.admin_override_value,
            expires_at=clinician.admin_override_expires_at,
        )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and as_utc(self.expires_at) <= now


@dataclass(frozen=True)
class StatusDecision:
    computed_status: ClinicianStatus
    final_status: ClinicianStatus
    override_resolution: OverrideResolution = OverrideResolution.NONE

    @property
    def clears_override(self) -> bool:
        return self.override_resolution in (
            OverrideResolution.CLEARED_EXPIRED,
            OverrideResolution.CLEARED_EXPIRED_LICENSE,
        )


# ---------------------------------------------------------------------------
# Pure rules
# ---------------------------------------------------------------------------

def is_state_license_item(
    definition: _DefinitionView,
    keyword: Optional[str] = None,
) -> bool:
    """Whether a definition is treated as a blocking state license.

    Matches on the label (case-insensitive substring) because definitions
    carry no license category of their own.
    """
    keyword = (keyword or settings.state_license_keyword).lower()
    return bool(definition.blocking) and keyword in definition.label.lower()


def expired_state_license_items(
    items: Iterable[_ItemView],
    keyword: Optional[str] = None,
) -> list[_ItemView]:
    return [
        item
        for item in items
        if item.status == ChecklistItemStatus.EXPIRED
        and is_state_license_item(item.item_definition, keyword)
    ]


def has_expired_state_license(
    items: Iterable[_ItemView],
    keyword: Optional[str] = None,
) -> bool:
    return bool(expired_state_license_items(items, keyword))


def compute_base_status(items: Sequence[_ItemView]) -> ClinicianStatus:
    """Status derived purely from item states, ignoring any override."""
    blocking = [i for i in items if i.item_definition.blocking]

    all_blocking_approved = all(i.status == ChecklistItemStatus.APPROVED for i in blocking)
    any_blocking_expired = any(i.status == ChecklistItemStatus.EXPIRED for i in blocking)
    any_not_started = any(i.status == ChecklistItemStatus.NOT_STARTED for i in items)

    if all_blocking_approved and not any_blocking_expired and len(blocking) > 0:
        return ClinicianStatus.READY
    if any_not_started and not any_blocking_expired:
        return ClinicianStatus.ONBOARDING
    return ClinicianStatus.NOT_READY


def resolve_status(
    items: Sequence[_ItemView],
    override: OverrideState,
    now: datetime,
    *,
    license_keyword: Optional[str] = None,
) -> StatusDecision:
    """Combine the base status with the override fields.

    Pure: the caller is responsible for clearing the override when
    ``decision.clears_override`` is set.
    """
    computed = compute_base_status(items)

    if not override.active:
        return StatusDecision(computed, computed)

    if override.is_expired(as_utc(now)):
        return StatusDecision(computed, computed, OverrideResolution.CLEARED_EXPIRED)

    if has_expired_state_license(items, license_keyword):
        return StatusDecision(computed, computed, OverrideResolution.CLEARED_EXPIRED_LICENSE)

    if override.value is not None:
        return StatusDecision(computed, override.value, OverrideResolution.APPLIED)

    return StatusDecision(computed, computed)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

async def get_clinician_for_update(
    db: AsyncSession,
    clinician_id: uuid.UUID,
    organization_id: uuid.UUID,
) -> Optional[Clinician]:
    """Load a clinician row under ``SELECT ... FOR UPDATE``.

    The row lock serializes concurrent recomputations for the same clinician
    (e.g. a review landing while the nightly sweep runs) until the caller's
    transaction ends.
    """
    stmt = (
        select(Clinician)
        .where(
            Clinician.id == clinician_id,
            Clinician.organization_id == organization_id,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def load_clinician_items(
    db: AsyncSession,
    clinician_id: uuid.UUID,
    organization_id: uuid.UUID,
) -> Sequence[ClinicianChecklistItem]:
    """All checklist items of a clinician joined with their definitions."""
    stmt = (
        select(ClinicianChecklistItem)
        .where(
            ClinicianChecklistItem.clinician_id == clinician_id,
            ClinicianChecklistItem.organization_id == organization_id,
        )
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalars().all()


async def clear_override_fields(
    db: AsyncSession,
    clinician: Clinician,
    details: OverrideExpiredDetails | ExpiredLicenseDetectedDetails | OverrideClearedByAdminDetails,
    *,
    actor_id: Optional[uuid.UUID] = None,
    actor_role: Optional[Role] = None,
) -> None:
    """Reset every override field and audit why.

    Does not touch ``clinician.status``; callers recompute afterwards.
    """
    clinician.admin_override_active = False
    clinician.admin_override_value = None
    clinician.admin_override_reason = None
    clinician.admin_override_expires_at = None
    await db.flush()

    await record_audit(
        db,
        organization_id=clinician.organization_id,
        entity_type=EntityType.CLINICIAN,
        entity_id=clinician.id,
        clinician_id=clinician.id,
        actor_id=actor_id,
        actor_role=actor_role,
        details=details,
    )


async def compute_status(
    db: AsyncSession,
    clinician_id: uuid.UUID,
    organization_id: uuid.UUID,
    *,
    clock: Clock,
) -> Optional[ClinicianStatus]:
    """Recompute and, if changed, persist a clinician's Ready-to-Staff status.

    Must be called after the triggering item write has been flushed so the
    item query observes it.

    Returns:
        The final status, or ``None`` when the clinician does not exist in
        the organization or has no checklist items yet.
    """
    clinician = await get_clinician_for_update(db, clinician_id, organization_id)
    if clinician is None:
        return None

    items = await load_clinician_items(db, clinician_id, organization_id)
    if not items:
        logger.debug("Clinician %s has no checklist items; skipping recompute", clinician_id)
        return None

    now = clock.now()
    override = OverrideState.from_clinician(clinician)
    decision = resolve_status(items, override, now)

    if decision.override_resolution == OverrideResolution.CLEARED_EXPIRED:
        await clear_override_fields(
            db,
            clinician,
            OverrideExpiredDetails(
                previous_override_value=override.value,
                expired_at=override.expires_at,
            ),
        )
        logger.info("Override expired for clinician %s; cleared", clinician_id)
    elif decision.override_resolution == OverrideResolution.CLEARED_EXPIRED_LICENSE:
        labels = tuple(i.item_definition.label for i in expired_state_license_items(items))
        await clear_override_fields(
            db,
            clinician,
            ExpiredLicenseDetectedDetails(
                previous_override_value=override.value,
                license_labels=labels,
            ),
        )
        logger.warning(
            "Override force-cleared for clinician %s: expired state license (%s)",
            clinician_id,
            ", ".join(labels),
        )

    previous_status = clinician.status
    if previous_status != decision.final_status:
        clinician.status = decision.final_status
        clinician.status_changed_at = now
        await db.flush()

        logger.info(
            "Clinician %s status: %s -> %s (computed=%s)",
            clinician_id,
            previous_status.value if previous_status else None,
            decision.final_status.value,
            decision.computed_status.value,
        )

        await record_audit(
            db,
            organization_id=organization_id,
            entity_type=EntityType.CLINICIAN,
            entity_id=clinician_id,
            clinician_id=clinician_id,
            details=StatusRecomputedDetails(
                previous_status=previous_status,
                new_status=decision.final_status,
                computed_status=decision.computed_status,
                override_active=override.active,
            ),
        )

    return decision.final_status
