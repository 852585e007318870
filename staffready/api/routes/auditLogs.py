"""
Audit log API routes
====================

  GET /api/v1/audit-logs  -- Organization audit trail, newest first
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from staffready.api.deps import CurrentActor, DBSession
from staffready.api.schemas.audit import AuditEntryOut
from staffready.services.auditLogService import AuditAction, list_audit_entries

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/audit-logs", tags=["Audit"])


@router.get(
    "",
    response_model=list[AuditEntryOut],
    summary="List audit entries for the organization",
)
async def list_audit_entries_route(
    db: DBSession,
    actor: CurrentActor,
    clinician_id: Optional[uuid.UUID] = None,
    action: Optional[AuditAction] = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
) -> list[AuditEntryOut]:
    if actor.is_clinician:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only organization staff can read the audit log.",
        )
    entries = await list_audit_entries(
        db,
        actor.organization_id,
        clinician_id=clinician_id,
        action=action,
        limit=limit,
        offset=offset,
    )
    return [AuditEntryOut.model_validate(entry) for entry in entries]
