"""
Expiration Reminders -- Daily Scheduled Job.

For each reminder offset (30, 14, 7, 1 and 0 days by default) the sweep finds
the ``approved`` items whose ``expires_at`` falls on the UTC day
``today + offset`` and emails the clinician.  When the offset is at or
below the admin alert threshold (7 days), every admin and super admin of
the clinician's organization is alerted as well.

A failed delivery is recorded as a ``NonFatalError`` for that recipient and
the sweep continues with the next one.  The ``expiration_reminder_sent``
audit entry is written once per clinician and item, and only when the
clinician's own reminder went out.

Usage with a simple cron runner::

    python -m staffready.jobs.reminderJob
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staffready.core.clock import Clock, start_of_day, system_clock
from staffready.core.config import settings
from staffready.core.results import NonFatalError
from staffready.models import (
    ADMIN_ROLES,
    ChecklistItemStatus,
    Clinician,
    ClinicianChecklistItem,
    User,
)
from staffready.services.auditLogService import (
    EntityType,
    ReminderSentDetails,
    record_audit,
)
from staffready.services.notificationService import ExpirationNotifier

logger = logging.getLogger(__name__)


@dataclass
class ReminderSweepResult:
    reminders_sent: int = 0
    admin_alerts_sent: int = 0
    failures: list[NonFatalError] = field(default_factory=list)
    error: Optional[str] = None


async def _org_admin_emails(
    db: AsyncSession,
    organization_id: uuid.UUID,
    cache: dict[uuid.UUID, list[str]],
) -> list[str]:
    if organization_id not in cache:
        stmt = select(User.email).where(
            User.organization_id == organization_id,
            User.role.in_(list(ADMIN_ROLES)),
        )
        cache[organization_id] = [row[0] for row in (await db.execute(stmt)).all()]
    return cache[organization_id]


async def _items_expiring_on_day(
    db: AsyncSession,
    clock: Clock,
    offset: int,
) -> Sequence[tuple[ClinicianChecklistItem, Clinician]]:
    window_start = start_of_day(clock.today() + timedelta(days=offset))
    window_end = window_start + timedelta(days=1)
    stmt = (
        select(ClinicianChecklistItem, Clinician)
        .join(Clinician, ClinicianChecklistItem.clinician_id == Clinician.id)
        .where(
            ClinicianChecklistItem.status == ChecklistItemStatus.APPROVED,
            ClinicianChecklistItem.expires_at >= window_start,
            ClinicianChecklistItem.expires_at < window_end,
        )
        .order_by(ClinicianChecklistItem.expires_at)
    )
    return (await db.execute(stmt)).unique().all()


async def run_expiration_reminders(
    db: AsyncSession,
    *,
    clock: Clock,
    notifier: ExpirationNotifier,
    reminder_days: Optional[Sequence[int]] = None,
    admin_threshold_days: Optional[int] = None,
) -> ReminderSweepResult:
    """Send expiration reminders for every configured offset.

    Never raises; an unexpected failure is logged and reported in
    ``result.error``, keeping the reminders already committed.
    """
    offsets = list(settings.reminder_days if reminder_days is None else reminder_days)
    threshold = (
        settings.admin_alert_threshold_days
        if admin_threshold_days is None
        else admin_threshold_days
    )
    result = ReminderSweepResult()
    admin_cache: dict[uuid.UUID, list[str]] = {}

    logger.info("Starting daily reminder check for %s", clock.today().isoformat())

    try:
        for offset in offsets:
            rows = await _items_expiring_on_day(db, clock, offset)
            if not rows:
                continue
            logger.info("Found %d item(s) expiring in %d day(s)", len(rows), offset)

            for item, clinician in rows:
                label = item.item_definition.label
                name = clinician.full_name

                try:
                    await notifier.send_expiration_reminder(
                        clinician.email, name, label, offset, item.expires_at
                    )
                except Exception as exc:
                    logger.warning(
                        "Reminder to %s for item %s failed: %s", clinician.email, item.id, exc
                    )
                    result.failures.append(
                        NonFatalError.from_exception("expiration_reminder", clinician.email, exc)
                    )
                    clinician_notified = False
                else:
                    result.reminders_sent += 1
                    clinician_notified = True

                admins_notified = 0
                if offset <= threshold:
                    for admin_email in await _org_admin_emails(
                        db, clinician.organization_id, admin_cache
                    ):
                        try:
                            await notifier.send_admin_expiration_alert(
                                admin_email, name, label, offset
                            )
                        except Exception as exc:
                            logger.warning(
                                "Admin alert to %s for item %s failed: %s",
                                admin_email,
                                item.id,
                                exc,
                            )
                            result.failures.append(
                                NonFatalError.from_exception("admin_expiration_alert", admin_email, exc)
                            )
                        else:
                            admins_notified += 1
                    result.admin_alerts_sent += admins_notified

                if clinician_notified:
                    await record_audit(
                        db,
                        organization_id=clinician.organization_id,
                        entity_type=EntityType.CHECKLIST_ITEM,
                        entity_id=item.id,
                        clinician_id=clinician.id,
                        details=ReminderSentDetails(
                            label=label,
                            days_until_expiry=offset,
                            expires_at=item.expires_at,
                            admins_notified=admins_notified,
                        ),
                    )
                    await db.commit()

    except Exception as exc:
        logger.exception("Reminder job failed")
        await db.rollback()
        result.error = f"{type(exc).__name__}: {exc}"

    logger.info(
        "Reminder check complete: %d reminder(s), %d admin alert(s), %d failure(s)%s",
        result.reminders_sent,
        result.admin_alerts_sent,
        len(result.failures),
        " (aborted)" if result.error else "",
    )
    return result


# ---------------------------------------------------------------------------
# CLI entry point (for manual runs / simple cron)
# ---------------------------------------------------------------------------

async def _cli_main() -> None:
    """Run the reminder sweep with the application session factory."""
    from staffready.api.deps import async_session_factory
    from staffready.services.notificationService import build_notifier

    async with async_session_factory() as session:
        result = await run_expiration_reminders(
            session, clock=system_clock, notifier=build_notifier()
        )
        print(f"Reminder sweep completed: {result}")  # noqa: T201


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(_cli_main())


if __name__ == "__main__":
    main()
