"""
Clinician API routes
====================

  POST   /api/v1/clinicians                           -- Onboard a clinician
  GET    /api/v1/clinicians/stats                     -- Status KPI counts
  GET    /api/v1/clinicians/expiring-items            -- Upcoming / past expirations
  GET    /api/v1/clinicians/{clinician_id}            -- Clinician detail
  POST   /api/v1/clinicians/{clinician_id}/recompute  -- Recompute Ready-to-Staff status
  POST   /api/v1/clinicians/{clinician_id}/override   -- Set a time-boxed admin override
  GET    /api/v1/clinicians/{clinician_id}/override   -- Current override
  DELETE /api/v1/clinicians/{clinician_id}/override   -- Clear the override
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from staffready.api.deps import AppClock, CurrentActor, DBSession
from staffready.api.routes._errors import raise_from_value_error
from staffready.api.schemas.clinician import (
    ClearOverrideOut,
    ClinicianOut,
    ExpiringItemOut,
    OnboardClinicianRequest,
    OverrideOut,
    RecomputeOut,
    SetOverrideRequest,
    StatusCountsOut,
)
from staffready.models import ClinicianStatus, Discipline
from staffready.services.clinicianService import (
    ClinicianProfile,
    get_clinician,
    get_expiring_items,
    get_status_counts,
    onboard_clinician,
)
from staffready.services.overrideService import clear_override, get_override, set_override
from staffready.services.readyToStaffService import compute_status

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clinicians", tags=["Clinicians"])


@router.post(
    "",
    response_model=ClinicianOut,
    status_code=status.HTTP_201_CREATED,
    summary="Onboard a clinician from a checklist template",
)
async def onboard_clinician_route(
    body: OnboardClinicianRequest,
    db: DBSession,
    actor: CurrentActor,
) -> ClinicianOut:
    profile = ClinicianProfile(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        discipline=Discipline(body.discipline),
        phone=body.phone,
        npi=body.npi,
    )
    try:
        clinician = await onboard_clinician(db, body.template_id, profile, actor)
    except ValueError as exc:
        raise_from_value_error(exc)
    return ClinicianOut.model_validate(clinician)


@router.get(
    "/stats",
    response_model=StatusCountsOut,
    summary="Clinician counts per Ready-to-Staff status",
)
async def clinician_stats_route(db: DBSession, actor: CurrentActor) -> StatusCountsOut:
    counts = await get_status_counts(db, actor.organization_id)
    return StatusCountsOut(**counts)


@router.get(
    "/expiring-items",
    response_model=list[ExpiringItemOut],
    summary="Approved items expiring soon and items already expired",
)
async def expiring_items_route(
    db: DBSession,
    actor: CurrentActor,
    clock: AppClock,
    days_ahead: int = Query(default=30, ge=0, le=365),
    limit: int = Query(default=20, ge=1, le=200),
) -> list[ExpiringItemOut]:
    rows = await get_expiring_items(
        db, actor.organization_id, clock=clock, days_ahead=days_ahead, limit=limit
    )
    return [ExpiringItemOut.model_validate(row) for row in rows]


@router.get(
    "/{clinician_id}",
    response_model=ClinicianOut,
    summary="Clinician detail",
)
async def get_clinician_route(
    clinician_id: uuid.UUID,
    db: DBSession,
    actor: CurrentActor,
) -> ClinicianOut:
    try:
        clinician = await get_clinician(db, clinician_id, actor.organization_id)
    except ValueError as exc:
        raise_from_value_error(exc)
    return ClinicianOut.model_validate(clinician)


@router.post(
    "/{clinician_id}/recompute",
    response_model=RecomputeOut,
    summary="Recompute a clinician's Ready-to-Staff status",
)
async def recompute_status_route(
    clinician_id: uuid.UUID,
    db: DBSession,
    actor: CurrentActor,
    clock: AppClock,
) -> RecomputeOut:
    if actor.is_clinician:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only organization staff can recompute a clinician's status.",
        )
    try:
        await get_clinician(db, clinician_id, actor.organization_id)
    except ValueError as exc:
        raise_from_value_error(exc)

    new_status = await compute_status(db, clinician_id, actor.organization_id, clock=clock)
    return RecomputeOut(clinician_id=clinician_id, status=new_status)


@router.post(
    "/{clinician_id}/override",
    response_model=OverrideOut,
    summary="Set a time-boxed admin status override",
    description=(
        "Forces the clinician's status for at most 72 hours.  Longer requests "
        "are capped; read ``expires_at`` for the granted expiry.  Refused "
        "while the clinician has an expired state license."
    ),
)
async def set_override_route(
    clinician_id: uuid.UUID,
    body: SetOverrideRequest,
    db: DBSession,
    actor: CurrentActor,
    clock: AppClock,
) -> OverrideOut:
    try:
        record = await set_override(
            db,
            clinician_id,
            actor.organization_id,
            value=ClinicianStatus(body.value),
            reason=body.reason,
            expires_in_hours=body.expires_in_hours,
            actor=actor,
            clock=clock,
        )
    except ValueError as exc:
        raise_from_value_error(exc)
    return OverrideOut.model_validate(record)


@router.get(
    "/{clinician_id}/override",
    response_model=Optional[OverrideOut],
    summary="Current admin override (null when none is active)",
)
async def get_override_route(
    clinician_id: uuid.UUID,
    db: DBSession,
    actor: CurrentActor,
) -> Optional[OverrideOut]:
    try:
        record = await get_override(db, clinician_id, actor.organization_id)
    except ValueError as exc:
        raise_from_value_error(exc)
    return OverrideOut.model_validate(record) if record is not None else None


@router.delete(
    "/{clinician_id}/override",
    response_model=ClearOverrideOut,
    summary="Clear the admin override and recompute",
)
async def clear_override_route(
    clinician_id: uuid.UUID,
    db: DBSession,
    actor: CurrentActor,
    clock: AppClock,
) -> ClearOverrideOut:
    try:
        new_status = await clear_override(
            db, clinician_id, actor.organization_id, actor=actor, clock=clock
        )
    except ValueError as exc:
        raise_from_value_error(exc)
    return ClearOverrideOut(clinician_id=clinician_id, status=new_status)
