"""
Pydantic v2 schemas for the checklist item API.

Covers:
- Item submission (all item types) and admin review
- Item listing grouped by section
- Checklist progress
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from staffready.models import ChecklistItemStatus, ChecklistItemType, ClinicianStatus


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class SubmitItemRequest(BaseModel):
    """Request body for submitting a checklist item.

    Only the fields relevant to the item's type are read.
    """

    value_text: Optional[str] = Field(default=None, max_length=5000)
    value_date: Optional[date] = None
    value_select: Optional[str] = Field(default=None, max_length=200)
    doc_storage_path: Optional[str] = Field(
        default=None,
        description="Storage key of an already uploaded document",
    )
    doc_original_name: Optional[str] = Field(default=None, max_length=300)
    doc_mime_type: Optional[str] = Field(default=None, max_length=120)
    expires_at: Optional[datetime] = Field(
        default=None,
        description="Document expiry; kept only for items that expire",
    )
    signer_name: Optional[str] = Field(default=None, max_length=200)
    agreement: bool = Field(
        default=False,
        description="Explicit acceptance of the agreement (e-signature items)",
    )


class ReviewItemRequest(BaseModel):
    """Request body for an admin review decision."""

    status: Literal["approved", "rejected"]
    rejection_reason: Optional[str] = Field(default=None, max_length=500)
    rejection_comment: Optional[str] = Field(default=None, max_length=2000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class ItemDefinitionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    label: str
    section: str
    type: ChecklistItemType
    required: bool
    blocking: bool
    admin_only: bool
    has_expiration: bool
    sort_order: int
    config_json: Optional[dict[str, Any]] = None


class ChecklistItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    clinician_id: uuid.UUID
    status: ChecklistItemStatus
    value_text: Optional[str] = None
    value_date: Optional[date] = None
    value_select: Optional[str] = None
    doc_storage_path: Optional[str] = None
    doc_original_name: Optional[str] = None
    doc_mime_type: Optional[str] = None
    expires_at: Optional[datetime] = None
    reviewed_by_id: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    rejection_comment: Optional[str] = None
    signer_name: Optional[str] = None
    signature_timestamp: Optional[datetime] = None
    signature_hash: Optional[str] = None
    signed_doc_path: Optional[str] = None
    item_definition: ItemDefinitionOut


class NonFatalErrorOut(BaseModel):
    operation: str
    target: str
    message: str


class SubmitItemOut(BaseModel):
    item: ChecklistItemOut
    clinician_status: Optional[ClinicianStatus] = None
    receipt_stored: Optional[bool] = Field(
        default=None,
        description="Signature receipt outcome; null when no receipt was due",
    )
    warnings: list[NonFatalErrorOut] = Field(default_factory=list)


class ReviewItemOut(BaseModel):
    item: ChecklistItemOut
    clinician_status: Optional[ClinicianStatus] = None


class ClinicianItemsOut(BaseModel):
    items: list[ChecklistItemOut]
    sections: dict[str, list[ChecklistItemOut]]


class ChecklistProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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
