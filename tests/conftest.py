"""
Shared pytest fixtures for StaffReady unit tests.

Provides mock database sessions, a frozen clock, recording fakes for the
notifier and the receipt store, and lightweight item / clinician objects
that mirror the ORM models without a live database.
"""

import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from staffready.core.actor import Actor
from staffready.core.clock import FixedClock
from staffready.models import (
    ChecklistItemStatus,
    ChecklistItemType,
    Clinician,
    ClinicianStatus,
    Role,
)

NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Database session mock
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db() -> AsyncMock:
    """Async mock of ``AsyncSession``.

    Supports ``db.execute()``, ``db.add()``, ``db.flush()`` and
    ``db.commit()`` out of the box.
    """
    session = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


# ---------------------------------------------------------------------------
# Recording fakes
# ---------------------------------------------------------------------------


class RecordingNotifier:
    """``ExpirationNotifier`` that records calls; addresses in ``failing`` raise."""

    def __init__(self, failing: Optional[set[str]] = None) -> None:
        self.failing = failing or set()
        self.reminders: list[dict] = []
        self.admin_alerts: list[dict] = []

    async def send_expiration_reminder(
        self, recipient_email, recipient_name, item_label, days_until_expiry, expires_at
    ) -> None:
        if recipient_email in self.failing:
            raise ConnectionError(f"mailbox unavailable: {recipient_email}")
        self.reminders.append({
            "to": recipient_email,
            "name": recipient_name,
            "label": item_label,
            "days": days_until_expiry,
            "expires_at": expires_at,
        })

    async def send_admin_expiration_alert(
        self, admin_email, clinician_name, item_label, days_until_expiry
    ) -> None:
        if admin_email in self.failing:
            raise ConnectionError(f"mailbox unavailable: {admin_email}")
        self.admin_alerts.append({
            "to": admin_email,
            "clinician": clinician_name,
            "label": item_label,
            "days": days_until_expiry,
        })


class InMemoryReceiptStore:
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}

    async def store_receipt(self, key: str, data: bytes) -> None:
        self.objects[key] = data


class FailingReceiptStore:
    def __init__(self) -> None:
        self.attempts = 0

    async def store_receipt(self, key: str, data: bytes) -> None:
        self.attempts += 1
        raise OSError("storage bucket unreachable")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def receipt_store() -> InMemoryReceiptStore:
    return InMemoryReceiptStore()


@pytest.fixture
def failing_receipt_store() -> FailingReceiptStore:
    return FailingReceiptStore()


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


@pytest.fixture
def org_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def admin_actor(org_id: uuid.UUID) -> Actor:
    return Actor(user_id=uuid.uuid4(), organization_id=org_id, role=Role.ADMIN)


@pytest.fixture
def clinician_actor(org_id: uuid.UUID) -> Actor:
    return Actor(user_id=uuid.uuid4(), organization_id=org_id, role=Role.CLINICIAN)


# ---------------------------------------------------------------------------
# Item / clinician stand-ins
# ---------------------------------------------------------------------------


def make_item(
    status: ChecklistItemStatus = ChecklistItemStatus.NOT_STARTED,
    *,
    label: str = "TB Test",
    blocking: bool = True,
    required: bool = True,
    item_type: ChecklistItemType = ChecklistItemType.FILE_UPLOAD,
) -> SimpleNamespace:
    """A checklist item shaped like ``ClinicianChecklistItem`` for pure rules."""
    definition = SimpleNamespace(
        label=label,
        blocking=blocking,
        required=required,
        type=item_type,
        section="Compliance",
    )
    return SimpleNamespace(id=uuid.uuid4(), status=status, item_definition=definition)


@pytest.fixture
def sample_clinician(org_id: uuid.UUID) -> Clinician:
    """A clinician in onboarding without an override."""
    clinician = MagicMock(spec=Clinician)
    clinician.id = uuid.uuid4()
    clinician.organization_id = org_id
    clinician.first_name = "Dana"
    clinician.last_name = "Reyes"
    clinician.full_name = "Dana Reyes"
    clinician.email = "dana.reyes@example.com"
    clinician.status = ClinicianStatus.ONBOARDING
    clinician.admin_override_active = False
    clinician.admin_override_value = None
    clinician.admin_override_reason = None
    clinician.admin_override_expires_at = None
    return clinician
