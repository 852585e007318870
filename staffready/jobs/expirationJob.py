"""
Item & Override Expiration -- Daily Scheduled Job.

This module provides the nightly sweep that:

1. Moves ``approved`` checklist items whose ``expires_at`` has passed to
   ``expired`` and recomputes the status of every affected clinician once.
2. Clears admin overrides whose expiry has passed and recomputes the
   affected clinicians.

The two sweeps are independent: each runs in its own unit of work and a
failure in one does not stop the other.  A clinician's lapsed items are
committed together with its recomputation, and every cleared override is
committed before the next one starts, so a crash partway through keeps the
work already done and the next run picks up exactly what is left.

Usage with a simple cron runner::

    python -m staffready.jobs.expirationJob
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from staffready.core.clock import Clock, system_clock
from staffready.models import ChecklistItemStatus, Clinician, ClinicianChecklistItem
from staffready.services.auditLogService import (
    EntityType,
    ItemExpiredDetails,
    OverrideExpiredDetails,
    record_audit,
)
from staffready.services.itemStateMachine import (
    TransitionTrigger,
    validate_item_transition,
)
from staffready.services.readyToStaffService import (
    clear_override_fields,
    compute_status,
    get_clinician_for_update,
)

logger = logging.getLogger(__name__)


@dataclass
class ItemExpirationResult:
    items_expired: int = 0
    clinicians_recomputed: int = 0
    error: Optional[str] = None


@dataclass
class OverrideExpirationResult:
    overrides_cleared: int = 0
    error: Optional[str] = None


@dataclass
class DailyExpirationResult:
    items: ItemExpirationResult = field(default_factory=ItemExpirationResult)
    overrides: OverrideExpirationResult = field(default_factory=OverrideExpirationResult)


# ---------------------------------------------------------------------------
# Item expiration
# ---------------------------------------------------------------------------

async def run_item_expiration(
    db: AsyncSession,
    *,
    clock: Clock,
) -> ItemExpirationResult:
    """Expire lapsed approved items, then recompute each owner once.

    Each clinician is one unit of work: its lapsed items and the resulting
    recompute are committed together.  Never raises; an unexpected failure
    is logged, the unfinished clinician is rolled back and the error is
    reported in ``result.error``.
    """
    now = clock.now()
    result = ItemExpirationResult()

    try:
        stmt = (
            select(ClinicianChecklistItem)
            .where(
                ClinicianChecklistItem.status == ChecklistItemStatus.APPROVED,
                ClinicianChecklistItem.expires_at.isnot(None),
                ClinicianChecklistItem.expires_at <= now,
            )
            .order_by(ClinicianChecklistItem.expires_at)
        )
        items = (await db.execute(stmt)).unique().scalars().all()

        if items:
            logger.info("Item expiration: %d approved item(s) past expiry", len(items))

        by_clinician: dict[uuid.UUID, list[ClinicianChecklistItem]] = {}
        for item in items:
            by_clinician.setdefault(item.clinician_id, []).append(item)

        for clinician_id, owned in by_clinician.items():
            organization_id = owned[0].organization_id
            expired = 0

            for item in owned:
                transition = validate_item_transition(
                    item.status, ChecklistItemStatus.EXPIRED, TransitionTrigger.EXPIRATION
                )
                if not transition.allowed:
                    logger.warning("Skipping item %s: %s", item.id, transition.reason)
                    continue

                definition = item.item_definition
                item.status = ChecklistItemStatus.EXPIRED
                await db.flush()
                await record_audit(
                    db,
                    organization_id=item.organization_id,
                    entity_type=EntityType.CHECKLIST_ITEM,
                    entity_id=item.id,
                    clinician_id=clinician_id,
                    details=ItemExpiredDetails(
                        label=definition.label,
                        blocking=definition.blocking,
                        expires_at=item.expires_at,
                    ),
                )
                expired += 1
                logger.info(
                    "Checklist item expired: id=%s, label=%s, clinician=%s",
                    item.id,
                    definition.label,
                    clinician_id,
                )

            if not expired:
                continue

            await compute_status(db, clinician_id, organization_id, clock=clock)
            await db.commit()
            result.items_expired += expired
            result.clinicians_recomputed += 1

    except Exception as exc:
        logger.exception("Item expiration job failed")
        await db.rollback()
        result.error = f"{type(exc).__name__}: {exc}"

    logger.info(
        "Item expiration complete: expired=%d, recomputed=%d%s",
        result.items_expired,
        result.clinicians_recomputed,
        " (aborted)" if result.error else "",
    )
    return result


# ---------------------------------------------------------------------------
# Override expiration
# ---------------------------------------------------------------------------

async def run_override_expiration(
    db: AsyncSession,
    *,
    clock: Clock,
) -> OverrideExpirationResult:
    """Clear lapsed overrides and recompute the affected clinicians.

    Never raises; an unexpected failure is logged and reported in
    ``result.error``.
    """
    now = clock.now()
    result = OverrideExpirationResult()

    try:
        stmt = select(Clinician.id, Clinician.organization_id).where(
            Clinician.admin_override_active.is_(True),
            Clinician.admin_override_expires_at.isnot(None),
            Clinician.admin_override_expires_at <= now,
        )
        candidates = (await db.execute(stmt)).all()

        for clinician_id, organization_id in candidates:
            clinician = await get_clinician_for_update(db, clinician_id, organization_id)
            # Re-check under the row lock; a concurrent clear may have won
            if clinician is None or not clinician.admin_override_active:
                continue

            await clear_override_fields(
                db,
                clinician,
                OverrideExpiredDetails(
                    previous_override_value=clinician.admin_override_value,
                    expired_at=clinician.admin_override_expires_at,
                ),
            )
            await compute_status(db, clinician_id, organization_id, clock=clock)
            await db.commit()

            result.overrides_cleared += 1
            logger.info("Override expired and cleared: clinician=%s", clinician_id)

    except Exception as exc:
        logger.exception("Override expiration job failed")
        await db.rollback()
        result.error = f"{type(exc).__name__}: {exc}"

    logger.info(
        "Override expiration complete: cleared=%d%s",
        result.overrides_cleared,
        " (aborted)" if result.error else "",
    )
    return result


async def run_daily_expiration(
    db: AsyncSession,
    *,
    clock: Clock,
) -> DailyExpirationResult:
    """Run both expiration sweeps; a failure in one does not skip the other."""
    logger.info("Starting daily expiration sweep at %s", clock.now().isoformat())
    items = await run_item_expiration(db, clock=clock)
    overrides = await run_override_expiration(db, clock=clock)
    return DailyExpirationResult(items=items, overrides=overrides)


# ---------------------------------------------------------------------------
# CLI entry point (for manual runs / simple cron)
# ---------------------------------------------------------------------------

async def _cli_main() -> None:
    """Run the daily expiration sweep with the application session factory."""
    from staffready.api.deps import async_session_factory

    async with async_session_factory() as session:
        result = await run_daily_expiration(session, clock=system_clock)
        print(f"Expiration sweep completed: {result}")  # noqa: T201


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(_cli_main())


if __name__ == "__main__":
    main()
