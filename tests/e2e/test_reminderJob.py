"""
E2E: expiration reminder sweep.

Reminder offsets (defaults): 30, 14, 7, 1 and 0 days.  Admins and super
admins of the clinician's organization are alerted at 7 days and below.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from staffready.jobs.reminderJob import run_expiration_reminders
from tests.conftest import RecordingNotifier
from tests.e2e.conftest import (
    ADMIN_EMAIL,
    DEF_CPR_ID,
    DEF_LICENSE_ID,
    SUPER_ADMIN_EMAIL,
    all_blocking_approved,
    audit_actions,
    create_clinician,
    days_from_now,
)


pytestmark = pytest.mark.asyncio


class TestReminderOffsets:

    async def test_thirty_day_reminder_goes_to_clinician_only(self, seeded_db, clock, notifier):
        clinician = await create_clinician(
            seeded_db,
            statuses=all_blocking_approved(),
            expires_at={DEF_CPR_ID: days_from_now(30)},
        )

        result = await run_expiration_reminders(seeded_db, clock=clock, notifier=notifier)

        assert result.error is None
        assert result.reminders_sent == 1
        assert result.admin_alerts_sent == 0
        assert notifier.reminders[0]["to"] == clinician.email
        assert notifier.reminders[0]["label"] == "CPR Certification"
        assert notifier.reminders[0]["days"] == 30
        assert notifier.admin_alerts == []
        assert await audit_actions(seeded_db, clinician.id) == ["expiration_reminder_sent"]

    async def test_seven_day_reminder_alerts_every_org_admin(self, seeded_db, clock, notifier):
        clinician = await create_clinician(
            seeded_db,
            statuses=all_blocking_approved(),
            expires_at={DEF_LICENSE_ID: days_from_now(7)},
        )

        result = await run_expiration_reminders(seeded_db, clock=clock, notifier=notifier)

        assert result.reminders_sent == 1
        assert result.admin_alerts_sent == 2
        assert sorted(a["to"] for a in notifier.admin_alerts) == sorted([ADMIN_EMAIL, SUPER_ADMIN_EMAIL])
        assert all(a["clinician"] == clinician.full_name for a in notifier.admin_alerts)

    async def test_days_between_offsets_are_skipped(self, seeded_db, clock, notifier):
        await create_clinician(
            seeded_db,
            statuses=all_blocking_approved(),
            expires_at={DEF_CPR_ID: days_from_now(10)},
        )

        result = await run_expiration_reminders(seeded_db, clock=clock, notifier=notifier)

        assert result.reminders_sent == 0
        assert notifier.reminders == []

    async def test_unapproved_items_are_not_reminded(self, seeded_db, clock, notifier):
        await create_clinician(seeded_db, expires_at={DEF_CPR_ID: days_from_now(14)})

        result = await run_expiration_reminders(seeded_db, clock=clock, notifier=notifier)

        assert result.reminders_sent == 0

    async def test_custom_offsets_and_threshold(self, seeded_db, clock, notifier):
        await create_clinician(
            seeded_db,
            statuses=all_blocking_approved(),
            expires_at={DEF_CPR_ID: days_from_now(10)},
        )

        result = await run_expiration_reminders(
            seeded_db,
            clock=clock,
            notifier=notifier,
            reminder_days=[10],
            admin_threshold_days=10,
        )

        assert result.reminders_sent == 1
        assert result.admin_alerts_sent == 2


class TestReminderFailures:

    async def test_one_failed_recipient_does_not_stop_the_others(self, seeded_db, clock):
        failing = await create_clinician(
            seeded_db,
            first_name="Lee",
            email="lee@bounce.example",
            statuses=all_blocking_approved(),
            expires_at={DEF_CPR_ID: days_from_now(1)},
        )
        healthy = await create_clinician(
            seeded_db,
            first_name="Kim",
            statuses=all_blocking_approved(),
            expires_at={DEF_CPR_ID: days_from_now(1)},
        )
        notifier = RecordingNotifier(failing={"lee@bounce.example", ADMIN_EMAIL})

        result = await run_expiration_reminders(seeded_db, clock=clock, notifier=notifier)

        assert result.error is None
        assert result.reminders_sent == 1
        assert [r["to"] for r in notifier.reminders] == [healthy.email]
        # Super admin is alerted for both clinicians; the admin mailbox fails both times
        assert result.admin_alerts_sent == 2
        assert {f.operation for f in result.failures} == {"expiration_reminder", "admin_expiration_alert"}
        assert len(result.failures) == 3

        assert await audit_actions(seeded_db, failing.id) == []
        assert await audit_actions(seeded_db, healthy.id) == ["expiration_reminder_sent"]

    async def test_unexpected_failure_keeps_committed_reminders(self, seeded_db, clock, notifier):
        early = await create_clinician(
            seeded_db,
            first_name="Lee",
            statuses=all_blocking_approved(),
            expires_at={DEF_CPR_ID: days_from_now(30)},
        )
        urgent = await create_clinician(
            seeded_db,
            first_name="Kim",
            statuses=all_blocking_approved(),
            expires_at={DEF_LICENSE_ID: days_from_now(7)},
        )
        early_id, urgent_id = early.id, urgent.id

        with patch(
            "staffready.jobs.reminderJob._org_admin_emails",
            new=AsyncMock(side_effect=RuntimeError("db down")),
        ):
            result = await run_expiration_reminders(seeded_db, clock=clock, notifier=notifier)

        assert result.error == "RuntimeError: db down"
        assert result.admin_alerts_sent == 0
        assert notifier.admin_alerts == []
        assert await audit_actions(seeded_db, early_id) == ["expiration_reminder_sent"]
        assert await audit_actions(seeded_db, urgent_id) == []
