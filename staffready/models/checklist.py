"""
SQLAlchemy models for checklist templates and their item definitions.

A template is the per-discipline schema of compliance requirements.  Its
definitions are read-only input to the Ready-to-Staff engine; once any
clinician has been onboarded against a definition it is only ever
soft-disabled (``enabled = False``), never deleted.
"""

import enum
import uuid
from typing import Any, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin, enum_column


class Discipline(str, enum.Enum):
    PT = "PT"
    OT = "OT"
    SLP = "SLP"
    MSW = "MSW"
    PTA = "PTA"
    COTA = "COTA"
    OTHER = "OTHER"


class ChecklistItemType(str, enum.Enum):
    FILE_UPLOAD = "file_upload"
    TEXT = "text"
    DATE = "date"
    SELECT = "select"
    E_SIGNATURE = "e_signature"
    ADMIN_STATUS = "admin_status"


class ChecklistTemplate(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "checklist_templates"

    # NULL organization = global template visible to every organization
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    discipline: Mapped[Discipline] = mapped_column(
        enum_column(Discipline, "discipline"),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    definitions: Mapped[list["ChecklistItemDefinition"]] = relationship(
        "ChecklistItemDefinition",
        back_populates="template",
        order_by="ChecklistItemDefinition.sort_order",
    )

    def __repr__(self) -> str:
        return f"<ChecklistTemplate(id={self.id}, name={self.name!r}, discipline={self.discipline})>"


class ChecklistItemDefinition(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "checklist_item_definitions"

    template_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("checklist_templates.id", ondelete="CASCADE"),
        nullable=False,
    )
    label: Mapped[str] = mapped_column(String(300), nullable=False)
    section: Mapped[str] = mapped_column(String(120), nullable=False)
    type: Mapped[ChecklistItemType] = mapped_column(
        enum_column(ChecklistItemType, "checklist_item_type"),
        nullable=False,
    )

    # Policy flags
    required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    blocking: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    admin_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    has_expiration: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Type-specific configuration (agreement text, select options, ...)
    config_json: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)

    # Storage key of the document an e-signature item refers to
    linked_document_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    template: Mapped["ChecklistTemplate"] = relationship(
        "ChecklistTemplate", back_populates="definitions"
    )

    def __repr__(self) -> str:
        return (
            f"<ChecklistItemDefinition(id={self.id}, label={self.label!r}, "
            f"type={self.type}, blocking={self.blocking})>"
        )
