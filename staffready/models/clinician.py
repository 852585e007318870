"""
SQLAlchemy models for clinicians and their per-definition checklist items.

``Clinician.status`` is the persisted, possibly-overridden Ready-to-Staff
status.  It is only written by ``readyToStaffService.compute_status`` and
``overrideService``.
"""

import enum
import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin, enum_column
from .checklist import ChecklistItemDefinition, Discipline


class ClinicianStatus(str, enum.Enum):
    ONBOARDING = "onboarding"
    READY = "ready"
    NOT_READY = "not_ready"
    INACTIVE = "inactive"


class ChecklistItemStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    SUBMITTED = "submitted"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class Clinician(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "clinicians"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    template_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("checklist_templates.id"),
        nullable=False,
    )

    # Profile
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    discipline: Mapped[Discipline] = mapped_column(
        enum_column(Discipline, "discipline"),
        nullable=False,
    )
    npi: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Ready-to-Staff
    status: Mapped[ClinicianStatus] = mapped_column(
        enum_column(ClinicianStatus, "clinician_status"),
        nullable=False,
        default=ClinicianStatus.ONBOARDING,
    )
    status_changed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Admin override
    admin_override_active: Mapped[bool] = mapped_column(default=False, nullable=False)
    admin_override_value: Mapped[Optional[ClinicianStatus]] = mapped_column(
        enum_column(ClinicianStatus, "clinician_status"),
        nullable=True,
    )
    admin_override_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_override_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    items: Mapped[list["ClinicianChecklistItem"]] = relationship(
        "ClinicianChecklistItem", back_populates="clinician"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return (
            f"<Clinician(id={self.id}, name={self.full_name!r}, status={self.status}, "
            f"override={self.admin_override_active})>"
        )


class ClinicianChecklistItem(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One row per (clinician, item definition); never deleted."""

    __tablename__ = "clinician_checklist_items"
    __table_args__ = (
        UniqueConstraint(
            "clinician_id", "item_definition_id", name="uq_clinician_item_definition"
        ),
    )

    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    clinician_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("clinicians.id", ondelete="RESTRICT"),
        nullable=False,
    )
    item_definition_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("checklist_item_definitions.id", ondelete="RESTRICT"),
        nullable=False,
    )
    status: Mapped[ChecklistItemStatus] = mapped_column(
        enum_column(ChecklistItemStatus, "checklist_item_status"),
        nullable=False,
        default=ChecklistItemStatus.NOT_STARTED,
    )

    # Values
    value_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    value_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    value_select: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Document
    doc_storage_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    doc_original_name: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    doc_mime_type: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Review
    reviewed_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=True,
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejection_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # E-signature
    signer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    signature_timestamp: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    signer_ip: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    signature_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    signed_doc_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    clinician: Mapped["Clinician"] = relationship("Clinician", back_populates="items")
    item_definition: Mapped["ChecklistItemDefinition"] = relationship(
        "ChecklistItemDefinition", lazy="joined"
    )

    def __repr__(self) -> str:
        return (
            f"<ClinicianChecklistItem(id={self.id}, clinician={self.clinician_id}, "
            f"definition={self.item_definition_id}, status={self.status})>"
        )
