"""
Pydantic v2 schemas for the clinician API: onboarding, dashboard reads,
status recomputation and admin overrides.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from staffready.models import ChecklistItemStatus, ClinicianStatus, Discipline


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OnboardClinicianRequest(BaseModel):
    template_id: uuid.UUID
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=320)
    discipline: Literal["PT", "OT", "SLP", "MSW", "PTA", "COTA", "OTHER"]
    phone: Optional[str] = Field(default=None, max_length=30)
    npi: Optional[str] = Field(default=None, max_length=20)


class SetOverrideRequest(BaseModel):
    """Request body for an admin status override."""

    value: Literal["ready", "not_ready", "onboarding"] = "ready"
    reason: str = Field(min_length=1, max_length=1000)
    expires_in_hours: float = Field(
        gt=0,
        description="Requested duration; silently capped at the configured maximum (72h)",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class ClinicianOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    template_id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    discipline: Discipline
    npi: Optional[str] = None
    status: ClinicianStatus
    status_changed_at: Optional[datetime] = None
    admin_override_active: bool
    admin_override_value: Optional[ClinicianStatus] = None
    admin_override_reason: Optional[str] = None
    admin_override_expires_at: Optional[datetime] = None
    created_at: datetime


class StatusCountsOut(BaseModel):
    total: int
    ready: int
    onboarding: int
    not_ready: int
    inactive: int


class ExpiringItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: uuid.UUID
    clinician_id: uuid.UUID
    clinician_name: str
    clinician_status: ClinicianStatus
    label: str
    section: str
    blocking: bool
    status: ChecklistItemStatus
    expires_at: Optional[datetime] = None
    days_remaining: Optional[int] = None


class RecomputeOut(BaseModel):
    clinician_id: uuid.UUID
    status: Optional[ClinicianStatus] = None


class OverrideOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    clinician_id: uuid.UUID
    override_active: bool
    override_value: Optional[ClinicianStatus] = None
    reason: Optional[str] = None
    expires_at: Optional[datetime] = None
    granted_hours: Optional[float] = None


class ClearOverrideOut(BaseModel):
    clinician_id: uuid.UUID
    status: Optional[ClinicianStatus] = None
