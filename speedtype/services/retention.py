"""Periodic clean-up of spent test sessions and abandoned guests.

Scheduled hourly from the app lifespan. Expiry itself is never enforced
here: ``consume`` compares ``expires_at`` to the clock, so a sweep that runs
late changes nothing about which tokens are accepted.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any

from sqlalchemy import delete, exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from speedtype.config import settings
from speedtype.database import async_session, utcnow
from speedtype.models import GuestSession, TestResult, TestSession
from speedtype.services.sessions import session_stats

log = logging.getLogger(__name__)


async def sweep_test_sessions(db: AsyncSession, grace: dt.timedelta | None = None) -> int:
    """Delete sessions expired for longer than ``grace`` that no result points at."""
    grace = grace if grace is not None else dt.timedelta(days=settings.session_grace_days)
    cutoff = utcnow() - grace
    result = await db.execute(
        delete(TestSession)
        .where(
            TestSession.expires_at < cutoff,
            ~exists(select(TestResult.id).where(TestResult.session_id == TestSession.id)),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount


async def sweep_guest_sessions(
    db: AsyncSession,
    idle: dt.timedelta | None = None,
    purge: dt.timedelta | None = None,
) -> dict[str, int]:
    """Retire idle guests, then delete long-retired ones that own nothing."""
    idle = idle if idle is not None else dt.timedelta(days=settings.guest_idle_days)
    purge = purge if purge is not None else dt.timedelta(days=settings.guest_purge_days)
    now = utcnow()

    deactivated = await db.execute(
        update(GuestSession)
        .where(
            GuestSession.last_seen_at < now - idle,
            GuestSession.is_active.is_(True),
        )
        .values(is_active=False)
        .execution_options(synchronize_session=False)
    )
    deleted = await db.execute(
        delete(GuestSession)
        .where(
            GuestSession.last_seen_at < now - purge,
            GuestSession.is_active.is_(False),
            ~exists(
                select(TestResult.id).where(TestResult.guest_session_id == GuestSession.id)
            ),
            ~exists(
                select(TestSession.id).where(TestSession.guest_session_id == GuestSession.id)
            ),
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return {"deactivated": deactivated.rowcount, "deleted": deleted.rowcount}


async def retention_sweep(db: AsyncSession) -> dict[str, Any]:
    """Run both sweeps and report what is left in the session table."""
    sessions_deleted = await sweep_test_sessions(db)
    guests = await sweep_guest_sessions(db)
    remaining = await session_stats(db)
    log.info(
        "Retention sweep: deleted %d test sessions, deactivated %d and deleted %d guest sessions; "
        "%d sessions remain (%d active, %d expired unused)",
        sessions_deleted, guests["deactivated"], guests["deleted"],
        remaining["total_sessions"], remaining["active_sessions"], remaining["expired_sessions"],
    )
    return {
        "sessions_deleted": sessions_deleted,
        "guests_deactivated": guests["deactivated"],
        "guests_deleted": guests["deleted"],
        "sessions_remaining": remaining["total_sessions"],
    }


async def run_retention_sweep() -> None:
    """Scheduler entry point; uses its own DB session."""
    async with async_session() as db:
        await retention_sweep(db)
