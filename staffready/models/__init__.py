"""
StaffReady SQLAlchemy Models
============================

Central import point for all ORM models. Import ``Base`` from here for
Alembic auto-generation and for the ``create_all`` convenience in tests.

Usage::

    from staffready.models import Base, Clinician, ClinicianChecklistItem
"""

# -- Base & Mixins --
from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

# -- Organizations & staff --
from .organization import ADMIN_ROLES, Organization, Role, User

# -- Templates --
from .checklist import (
    ChecklistItemDefinition,
    ChecklistItemType,
    ChecklistTemplate,
    Discipline,
)

# -- Clinicians & items --
from .clinician import (
    ChecklistItemStatus,
    Clinician,
    ClinicianChecklistItem,
    ClinicianStatus,
)

# -- Audit --
from .audit import AuditLog

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    # Organizations
    "Organization",
    "User",
    "Role",
    "ADMIN_ROLES",
    # Templates
    "ChecklistTemplate",
    "ChecklistItemDefinition",
    "ChecklistItemType",
    "Discipline",
    # Clinicians
    "Clinician",
    "ClinicianStatus",
    "ClinicianChecklistItem",
    "ChecklistItemStatus",
    # Audit
    "AuditLog",
]
