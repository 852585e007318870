"""
Checklist Item API routes
=========================

  GET  /api/v1/clinicians/{clinician_id}/items     -- Items grouped by section
  GET  /api/v1/clinicians/{clinician_id}/progress  -- Checklist progress
  POST /api/v1/checklist-items/{item_id}/submit    -- Submit a value / signature
  POST /api/v1/checklist-items/{item_id}/review    -- Admin approve or reject
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter

from staffready.api.deps import AppClock, ClientIP, CurrentActor, DBSession, Receipts
from staffready.api.routes._errors import raise_from_value_error
from staffready.api.schemas.checklist import (
    ChecklistItemOut,
    ChecklistProgressOut,
    ClinicianItemsOut,
    NonFatalErrorOut,
    ReviewItemOut,
    ReviewItemRequest,
    SubmitItemOut,
    SubmitItemRequest,
)
from staffready.models import ChecklistItemStatus
from staffready.services.checklistItemService import (
    ReviewDecision,
    SubmissionPayload,
    get_clinician_items,
    get_clinician_progress,
    review_item,
    submit_item,
)
from staffready.services.clinicianService import get_clinician

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Checklist Items"])


@router.get(
    "/clinicians/{clinician_id}/items",
    response_model=ClinicianItemsOut,
    summary="List a clinician's checklist items",
)
async def list_clinician_items_route(
    clinician_id: uuid.UUID,
    db: DBSession,
    actor: CurrentActor,
) -> ClinicianItemsOut:
    try:
        await get_clinician(db, clinician_id, actor.organization_id)
    except ValueError as exc:
        raise_from_value_error(exc)

    listing = await get_clinician_items(db, clinician_id, actor.organization_id)
    return ClinicianItemsOut(
        items=[ChecklistItemOut.model_validate(i) for i in listing.items],
        sections={
            section: [ChecklistItemOut.model_validate(i) for i in items]
            for section, items in listing.sections.items()
        },
    )


@router.get(
    "/clinicians/{clinician_id}/progress",
    response_model=ChecklistProgressOut,
    summary="Checklist completion progress for a clinician",
)
async def clinician_progress_route(
    clinician_id: uuid.UUID,
    db: DBSession,
    actor: CurrentActor,
) -> ChecklistProgressOut:
    try:
        await get_clinician(db, clinician_id, actor.organization_id)
    except ValueError as exc:
        raise_from_value_error(exc)

    progress = await get_clinician_progress(db, clinician_id, actor.organization_id)
    return ChecklistProgressOut.model_validate(progress)


@router.post(
    "/checklist-items/{item_id}/submit",
    response_model=SubmitItemOut,
    summary="Submit a checklist item",
    description=(
        "Submit the value for a checklist item.  E-signature and admin "
        "status items are approved immediately; other types wait for review.  "
        "A failed signature receipt upload is reported in ``warnings`` and "
        "does not fail the request."
    ),
)
async def submit_item_route(
    item_id: uuid.UUID,
    body: SubmitItemRequest,
    db: DBSession,
    actor: CurrentActor,
    clock: AppClock,
    receipts: Receipts,
    client_ip: ClientIP,
) -> SubmitItemOut:
    payload = SubmissionPayload(**body.model_dump(), signer_ip=client_ip)
    try:
        outcome = await submit_item(
            db, item_id, payload, actor, clock=clock, receipt_store=receipts
        )
    except ValueError as exc:
        raise_from_value_error(exc)

    warnings = []
    if outcome.receipt is not None and outcome.receipt.error is not None:
        error = outcome.receipt.error
        warnings.append(
            NonFatalErrorOut(operation=error.operation, target=error.target, message=error.message)
        )

    return SubmitItemOut(
        item=ChecklistItemOut.model_validate(outcome.item),
        clinician_status=outcome.clinician_status,
        receipt_stored=outcome.receipt.ok if outcome.receipt is not None else None,
        warnings=warnings,
    )


@router.post(
    "/checklist-items/{item_id}/review",
    response_model=ReviewItemOut,
    summary="Approve or reject a submitted checklist item",
)
async def review_item_route(
    item_id: uuid.UUID,
    body: ReviewItemRequest,
    db: DBSession,
    actor: CurrentActor,
    clock: AppClock,
) -> ReviewItemOut:
    decision = ReviewDecision(
        status=ChecklistItemStatus(body.status),
        rejection_reason=body.rejection_reason,
        rejection_comment=body.rejection_comment,
    )
    try:
        outcome = await review_item(db, item_id, decision, actor, clock=clock)
    except ValueError as exc:
        raise_from_value_error(exc)

    return ReviewItemOut(
        item=ChecklistItemOut.model_validate(outcome.item),
        clinician_status=outcome.clinician_status,
    )
