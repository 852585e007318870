"""
Checklist Item Service
======================

Submission and review of clinician checklist items.

Business rules
--------------
* Every status change is validated by ``itemStateMachine`` first; a refused
  transition raises ``InvalidStateError`` naming the current status and
  leaves the item untouched.
* ``e_signature`` submissions are approved without review.  The signature
  hash is the hex SHA-256 digest of ``signer|clinician|item|timestamp`` and
  is stored for tamper evidence, not secrecy.
* When the item definition links a document, a JSON signature receipt is
  uploaded best-effort.  A failed upload is reported in the outcome and
  never undoes the signature.
* ``admin_status`` items can only be set by organization staff and are
  approved with the actor stamped as reviewer.
* Every submission and every review ends with a status recomputation for
  the owning clinician, after the item write has been flushed.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staffready.core.actor import Actor
from staffready.core.clock import Clock
from staffready.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    MissingValueError,
    NotFoundError,
)
from staffready.core.results import SideEffectResult
from staffready.models import (
    ChecklistItemDefinition,
    ChecklistItemStatus,
    ChecklistItemType,
    ClinicianChecklistItem,
    ClinicianStatus,
)
from staffready.services.auditLogService import (
    EntityType,
    ItemApprovedDetails,
    ItemRejectedDetails,
    ItemSubmittedDetails,
    record_audit,
)
from staffready.services.itemStateMachine import (
    TransitionTrigger,
    validate_item_transition,
)
from staffready.services.readyToStaffService import compute_status
from staffready.services.storageService import ReceiptStore, store_receipt_safely

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Inputs / outputs
# ---------------------------------------------------------------------------

@dataclass
class SubmissionPayload:
    """Values a clinician (or admin) submits for one item.

    Only the fields relevant to the item's type are read.
    """
    value_text: Optional[str] = None
    value_date: Optional[date] = None
    value_select: Optional[str] = None
    doc_storage_path: Optional[str] = None
    doc_original_name: Optional[str] = None
    doc_mime_type: Optional[str] = None
    expires_at: Optional[datetime] = None
    signer_name: Optional[str] = None
    agreement: bool = False
    signer_ip: Optional[str] = None


@dataclass
class ReviewDecision:
    status: ChecklistItemStatus
    rejection_reason: Optional[str] = None
    rejection_comment: Optional[str] = None


@dataclass
class SubmissionOutcome:
    item: ClinicianChecklistItem
    clinician_status: Optional[ClinicianStatus]
    receipt: Optional[SideEffectResult] = None


@dataclass
class ReviewOutcome:
    item: ClinicianChecklistItem
    clinician_status: Optional[ClinicianStatus]


@dataclass
class ClinicianItems:
    items: list[ClinicianChecklistItem]
    sections: dict[str, list[ClinicianChecklistItem]] = field(default_factory=dict)


@dataclass(frozen=True)
class ChecklistProgress:
    total: int
    approved: int
    submitted: int
    rejected: int
    expired: int
    not_started: int
    required_total: int
    required_approved: int
    blocking_total: int
    blocking_approved: int
    percentage: int


# ---------------------------------------------------------------------------
# Signature helpers
# ---------------------------------------------------------------------------

def compute_signature_hash(
    signer_name: str,
    clinician_id: uuid.UUID,
    item_id: uuid.UUID,
    signed_at: datetime,
) -> str:
    """Deterministic SHA-256 over the signer, clinician, item and timestamp."""
    payload = f"{signer_name}|{clinician_id}|{item_id}|{signed_at.isoformat()}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def receipt_key(item: ClinicianChecklistItem) -> str:
    return f"signatures/{item.organization_id}/{item.clinician_id}/{item.id}.json"


def build_signature_receipt(
    item: ClinicianChecklistItem,
    definition: ChecklistItemDefinition,
) -> bytes:
    config = definition.config_json or {}
    receipt = {
        "item_id": str(item.id),
        "clinician_id": str(item.clinician_id),
        "organization_id": str(item.organization_id),
        "label": definition.label,
        "signer_name": item.signer_name,
        "signer_ip": item.signer_ip,
        "signature_timestamp": item.signature_timestamp.isoformat()
        if item.signature_timestamp
        else None,
        "signature_hash": item.signature_hash,
        "agreement_text": config.get("agreement_text") or config.get("agreementText"),
        "linked_document": definition.linked_document_path,
    }
    return json.dumps(receipt, sort_keys=True, indent=2).encode("utf-8")


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def _get_item(
    db: AsyncSession,
    item_id: uuid.UUID,
    organization_id: uuid.UUID,
) -> ClinicianChecklistItem:
    """Fetch an item of the organization (with its definition) or raise."""
    stmt = (
        select(ClinicianChecklistItem)
        .where(
            ClinicianChecklistItem.id == item_id,
            ClinicianChecklistItem.organization_id == organization_id,
        )
        .with_for_update(of=ClinicianChecklistItem)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    item = result.unique().scalar_one_or_none()
    if item is None:
        raise NotFoundError(f"Checklist item not found: {item_id}")
    return item


def _check_transition(
    item: ClinicianChecklistItem,
    target: ChecklistItemStatus,
    trigger: TransitionTrigger,
) -> None:
    outcome = validate_item_transition(item.status, target, trigger)
    if not outcome.allowed:
        raise InvalidStateError(outcome.reason)


def _require(value, message: str):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingValueError(message)
    return value


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

async def submit_item(
    db: AsyncSession,
    item_id: uuid.UUID,
    payload: SubmissionPayload,
    actor: Actor,
    *,
    clock: Clock,
    receipt_store: Optional[ReceiptStore] = None,
) -> SubmissionOutcome:
    """Submit a value for a checklist item.

    Args:
        db: Async database session (caller commits).
        item_id: The clinician checklist item to submit.
        payload: Type-specific values.
        actor: Who is submitting.
        clock: Source of the submission/signature timestamp.
        receipt_store: Where signature receipts go; ``None`` skips the upload.

    Returns:
        SubmissionOutcome with the updated item, the clinician status after
        recomputation and the receipt upload result (signatures only).

    Raises:
        NotFoundError: Item not in the actor's organization.
        ForbiddenError: Admin-only item submitted by a clinician.
        InvalidStateError: Item is approved or expired.
        MissingValueError: The field required by the item type is absent.
    """
    item = await _get_item(db, item_id, actor.organization_id)
    definition = item.item_definition

    if definition.admin_only and actor.is_clinician:
        raise ForbiddenError("This item can only be set by an admin.")

    now = clock.now()
    item_type = definition.type

    if item_type in (ChecklistItemType.E_SIGNATURE, ChecklistItemType.ADMIN_STATUS):
        target = ChecklistItemStatus.APPROVED
    else:
        target = ChecklistItemStatus.SUBMITTED
    _check_transition(item, target, TransitionTrigger.SUBMISSION)

    if item_type == ChecklistItemType.FILE_UPLOAD:
        item.doc_storage_path = _require(payload.doc_storage_path, "File upload required.")
        item.doc_original_name = payload.doc_original_name
        item.doc_mime_type = payload.doc_mime_type
        if payload.expires_at is not None and definition.has_expiration:
            item.expires_at = payload.expires_at

    elif item_type == ChecklistItemType.TEXT:
        item.value_text = _require(payload.value_text, "Text value required.")

    elif item_type == ChecklistItemType.DATE:
        item.value_date = _require(payload.value_date, "Date value required.")

    elif item_type == ChecklistItemType.SELECT:
        item.value_select = _require(payload.value_select, "Selection required.")

    elif item_type == ChecklistItemType.E_SIGNATURE:
        signer_name = _require(payload.signer_name, "Signer name required.").strip()
        if not payload.agreement:
            raise MissingValueError("The agreement must be accepted to sign.")
        item.value_text = "signed"
        item.signer_name = signer_name
        item.signer_ip = payload.signer_ip
        item.signature_timestamp = now
        item.signature_hash = compute_signature_hash(
            signer_name, item.clinician_id, item.id, now
        )
        item.reviewed_at = now

    elif item_type == ChecklistItemType.ADMIN_STATUS:
        if actor.is_clinician:
            raise ForbiddenError("Admin status items are admin-only.")
        item.value_select = _require(payload.value_select, "Status selection required.")
        item.reviewed_by_id = actor.user_id
        item.reviewed_at = now

    if target == ChecklistItemStatus.APPROVED:
        item.rejection_reason = None
        item.rejection_comment = None
    item.status = target
    await db.flush()

    receipt: Optional[SideEffectResult] = None
    if (
        item_type == ChecklistItemType.E_SIGNATURE
        and definition.linked_document_path
        and receipt_store is not None
    ):
        key = receipt_key(item)
        receipt = await store_receipt_safely(
            receipt_store, key, build_signature_receipt(item, definition)
        )
        if receipt.ok:
            item.signed_doc_path = key
            await db.flush()

    await record_audit(
        db,
        organization_id=item.organization_id,
        entity_type=EntityType.CHECKLIST_ITEM,
        entity_id=item.id,
        clinician_id=item.clinician_id,
        actor_id=actor.user_id,
        actor_role=actor.role,
        details=ItemSubmittedDetails(
            type=item_type.value,
            label=definition.label,
            resulting_status=target.value,
        ),
    )

    logger.info(
        "Checklist item submitted: id=%s, type=%s, status=%s, by=%s",
        item.id,
        item_type.value,
        target.value,
        actor.user_id,
    )

    clinician_status = await compute_status(
        db, item.clinician_id, item.organization_id, clock=clock
    )
    return SubmissionOutcome(item=item, clinician_status=clinician_status, receipt=receipt)


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

async def review_item(
    db: AsyncSession,
    item_id: uuid.UUID,
    decision: ReviewDecision,
    actor: Actor,
    *,
    clock: Clock,
) -> ReviewOutcome:
    """Admin approves or rejects a submitted item, then recomputes status.

    Raises:
        ForbiddenError: The actor is a clinician.
        NotFoundError: Item not in the actor's organization.
        InvalidStateError: Item is not ``submitted`` or ``pending_review``,
            or the decision is neither approve nor reject.
    """
    if actor.is_clinician:
        raise ForbiddenError("Only organization staff can review checklist items.")

    item = await _get_item(db, item_id, actor.organization_id)
    definition = item.item_definition
    _check_transition(item, decision.status, TransitionTrigger.REVIEW)

    now = clock.now()
    item.status = decision.status
    item.reviewed_by_id = actor.user_id
    item.reviewed_at = now

    if decision.status == ChecklistItemStatus.REJECTED:
        item.rejection_reason = decision.rejection_reason or None
        item.rejection_comment = decision.rejection_comment or None
        details = ItemRejectedDetails(
            label=definition.label,
            reason=item.rejection_reason,
            comment=item.rejection_comment,
        )
    else:
        item.rejection_reason = None
        item.rejection_comment = None
        details = ItemApprovedDetails(label=definition.label)

    await db.flush()

    await record_audit(
        db,
        organization_id=item.organization_id,
        entity_type=EntityType.CHECKLIST_ITEM,
        entity_id=item.id,
        clinician_id=item.clinician_id,
        actor_id=actor.user_id,
        actor_role=actor.role,
        details=details,
    )

    logger.info(
        "Checklist item reviewed: id=%s, decision=%s, by=%s",
        item.id,
        decision.status.value,
        actor.user_id,
    )

    clinician_status = await compute_status(
        db, item.clinician_id, item.organization_id, clock=clock
    )
    return ReviewOutcome(item=item, clinician_status=clinician_status)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_clinician_items(
    db: AsyncSession,
    clinician_id: uuid.UUID,
    organization_id: uuid.UUID,
) -> ClinicianItems:
    """A clinician's items in checklist order, also grouped by section."""
    stmt = (
        select(ClinicianChecklistItem)
        .join(
            ChecklistItemDefinition,
            ClinicianChecklistItem.item_definition_id == ChecklistItemDefinition.id,
        )
        .where(
            ClinicianChecklistItem.clinician_id == clinician_id,
            ClinicianChecklistItem.organization_id == organization_id,
        )
        .order_by(ChecklistItemDefinition.sort_order, ChecklistItemDefinition.label)
    )
    result = await db.execute(stmt)
    items = list(result.unique().scalars().all())

    sections: dict[str, list[ClinicianChecklistItem]] = {}
    for item in items:
        sections.setdefault(item.item_definition.section, []).append(item)
    return ClinicianItems(items=items, sections=sections)


def summarize_progress(items: Sequence[ClinicianChecklistItem]) -> ChecklistProgress:
    def count(status: ChecklistItemStatus, pool=items) -> int:
        return sum(1 for i in pool if i.status == status)

    required = [i for i in items if i.item_definition.required]
    blocking = [i for i in items if i.item_definition.blocking]
    approved = count(ChecklistItemStatus.APPROVED)
    total = len(items)

    return ChecklistProgress(
        total=total,
        approved=approved,
        submitted=count(ChecklistItemStatus.SUBMITTED) + count(ChecklistItemStatus.PENDING_REVIEW),
        rejected=count(ChecklistItemStatus.REJECTED),
        expired=count(ChecklistItemStatus.EXPIRED),
        not_started=count(ChecklistItemStatus.NOT_STARTED),
        required_total=len(required),
        required_approved=count(ChecklistItemStatus.APPROVED, required),
        blocking_total=len(blocking),
        blocking_approved=count(ChecklistItemStatus.APPROVED, blocking),
        percentage=round(approved * 100 / total) if total else 0,
    )


async def get_clinician_progress(
    db: AsyncSession,
    clinician_id: uuid.UUID,
    organization_id: uuid.UUID,
) -> ChecklistProgress:
    listing = await get_clinician_items(db, clinician_id, organization_id)
    return summarize_progress(listing.items)
