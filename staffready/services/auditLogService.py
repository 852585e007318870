"""
Audit Log Service
=================

Append-only audit trail for every computed-status change, override set or
clear, and checklist item transition.

Each audit action has exactly one details record type.  ``record_audit``
derives the action from the details record, so a caller cannot log an
``override_set`` entry with a reminder payload.  Rows are never updated or
deleted.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Optional, Sequence, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staffready.models import AuditLog, ClinicianStatus, Role

logger = logging.getLogger(__name__)


class AuditAction(str, enum.Enum):
    CLINICIAN_ONBOARDED = "clinician_onboarded"
    ITEM_SUBMITTED = "item_submitted"
    ITEM_APPROVED = "item_approved"
    ITEM_REJECTED = "item_rejected"
    ITEM_EXPIRED = "item_expired"
    STATUS_RECOMPUTED = "status_recomputed"
    OVERRIDE_SET = "override_set"
    OVERRIDE_CLEARED_BY_ADMIN = "override_cleared_by_admin"
    OVERRIDE_EXPIRED = "override_expired"
    EXPIRED_LICENSE_DETECTED = "expired_license_detected"
    EXPIRATION_REMINDER_SENT = "expiration_reminder_sent"


class EntityType(str, enum.Enum):
    CLINICIAN = "clinician"
    CHECKLIST_ITEM = "checklist_item"


# ---------------------------------------------------------------------------
# Details records
# ---------------------------------------------------------------------------

def _jsonable(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


@dataclass(frozen=True)
class _AuditDetails:
    action: ClassVar[AuditAction]

    def to_json(self) -> dict[str, Any]:
        return {key: _jsonable(value) for key, value in asdict(self).items()}


@dataclass(frozen=True)
class ClinicianOnboardedDetails(_AuditDetails):
    action: ClassVar[AuditAction] = AuditAction.CLINICIAN_ONBOARDED
    name: str
    discipline: str
    template: str
    item_count: int


@dataclass(frozen=True)
class ItemSubmittedDetails(_AuditDetails):
    action: ClassVar[AuditAction] = AuditAction.ITEM_SUBMITTED
    type: str
    label: str
    resulting_status: str


@dataclass(frozen=True)
class ItemApprovedDetails(_AuditDetails):
    action: ClassVar[AuditAction] = AuditAction.ITEM_APPROVED
    label: str


@dataclass(frozen=True)
class ItemRejectedDetails(_AuditDetails):
    action: ClassVar[AuditAction] = AuditAction.ITEM_REJECTED
    label: str
    reason: Optional[str] = None
    comment: Optional[str] = None


@dataclass(frozen=True)
class ItemExpiredDetails(_AuditDetails):
    action: ClassVar[AuditAction] = AuditAction.ITEM_EXPIRED
    label: str
    blocking: bool
    expires_at: Optional[datetime]


@dataclass(frozen=True)
class StatusRecomputedDetails(_AuditDetails):
    action: ClassVar[AuditAction] = AuditAction.STATUS_RECOMPUTED
    previous_status: ClinicianStatus
    new_status: ClinicianStatus
    computed_status: ClinicianStatus
    override_active: bool


@dataclass(frozen=True)
class OverrideSetDetails(_AuditDetails):
    action: ClassVar[AuditAction] = AuditAction.OVERRIDE_SET
    override_value: ClinicianStatus
    reason: str
    expires_at: datetime
    expires_in_hours: float
    requested_hours: float


@dataclass(frozen=True)
class OverrideClearedByAdminDetails(_AuditDetails):
    action: ClassVar[AuditAction] = AuditAction.OVERRIDE_CLEARED_BY_ADMIN
    previous_override_value: Optional[ClinicianStatus]


@dataclass(frozen=True)
class OverrideExpiredDetails(_AuditDetails):
    action: ClassVar[AuditAction] = AuditAction.OVERRIDE_EXPIRED
    previous_override_value: Optional[ClinicianStatus]
    expired_at: Optional[datetime]


@dataclass(frozen=True)
class ExpiredLicenseDetectedDetails(_AuditDetails):
    action: ClassVar[AuditAction] = AuditAction.EXPIRED_LICENSE_DETECTED
    previous_override_value: Optional[ClinicianStatus]
    license_labels: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ReminderSentDetails(_AuditDetails):
    action: ClassVar[AuditAction] = AuditAction.EXPIRATION_REMINDER_SENT
    label: str
    days_until_expiry: int
    expires_at: Optional[datetime]
    admins_notified: int = 0


AuditDetails = Union[
    ClinicianOnboardedDetails,
    ItemSubmittedDetails,
    ItemApprovedDetails,
    ItemRejectedDetails,
    ItemExpiredDetails,
    StatusRecomputedDetails,
    OverrideSetDetails,
    OverrideClearedByAdminDetails,
    OverrideExpiredDetails,
    ExpiredLicenseDetectedDetails,
    ReminderSentDetails,
]


# ---------------------------------------------------------------------------
# Write side
# ---------------------------------------------------------------------------

async def record_audit(
    db: AsyncSession,
    *,
    organization_id: uuid.UUID,
    entity_type: EntityType,
    entity_id: uuid.UUID,
    details: AuditDetails,
    actor_id: Optional[uuid.UUID] = None,
    actor_role: Optional[Role] = None,
    clinician_id: Optional[uuid.UUID] = None,
    at: Optional[datetime] = None,
) -> AuditLog:
    """Append one audit entry to the session.

    The row is added and flushed but not committed; it shares the caller's
    transaction with the change it describes.
    """
    entry = AuditLog(
        organization_id=organization_id,
        actor_user_id=actor_id,
        actor_role=actor_role,
        clinician_id=clinician_id,
        entity_type=entity_type.value,
        entity_id=entity_id,
        action=details.action.value,
        details_json=details.to_json(),
    )
    if at is not None:
        entry.created_at = at
    db.add(entry)
    await db.flush()

    logger.debug(
        "Audit: org=%s action=%s entity=%s:%s actor=%s",
        organization_id,
        details.action.value,
        entity_type.value,
        entity_id,
        actor_id,
    )
    return entry


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------

async def list_audit_entries(
    db: AsyncSession,
    organization_id: uuid.UUID,
    *,
    clinician_id: Optional[uuid.UUID] = None,
    action: Optional[AuditAction] = None,
    limit: int = 50,
    offset: int = 0,
) -> Sequence[AuditLog]:
    """Return audit entries for an organization, newest first."""
    stmt = select(AuditLog).where(AuditLog.organization_id == organization_id)
    if clinician_id is not None:
        stmt = stmt.where(AuditLog.clinician_id == clinician_id)
    if action is not None:
        stmt = stmt.where(AuditLog.action == action.value)
    stmt = stmt.order_by(AuditLog.created_at.desc()).limit(limit).offset(offset)
    result = await db.execute(stmt)
    return result.scalars().all()
