"""Anonymous guest sessions and their hand-over to registered users."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from speedtype.database import utcnow
from speedtype.errors import GuestSessionNotFound
from speedtype.models import GuestSession, TestResult

logger = logging.getLogger(__name__)


async def create_guest_session(db: AsyncSession) -> GuestSession:
    """Create a guest identity; ``guest_id`` is the opaque value handed to the client."""
    now = utcnow()
    guest = GuestSession(
        guest_id=str(uuid.uuid4()),
        created_at=now,
        last_seen_at=now,
        is_active=True,
    )
    db.add(guest)
    await db.commit()
    logger.info("Created guest session %s", guest.id)
    return guest


async def get_active_guest(db: AsyncSession, guest_id: str | None) -> GuestSession | None:
    if not guest_id:
        return None
    result = await db.execute(
        select(GuestSession).where(
            GuestSession.guest_id == guest_id,
            GuestSession.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


async def touch_guest(db: AsyncSession, guest: GuestSession) -> None:
    """Record activity so the retention sweep leaves the guest alone."""
    guest.last_seen_at = utcnow()
    await db.commit()


async def reconcile(db: AsyncSession, guest_id: str, user_id: int) -> dict[str, Any]:
    """Move every result of an active guest session to ``user_id``.

    The guest is retired and its results reassigned in one transaction. The
    retirement is a conditional update on ``is_active``, so when two calls
    race for the same guest only one claims anything; the other raises
    GuestSessionNotFound, as does any call for an unknown or retired guest.

    Returns:
      {"claimed_count": int}
    """
    guest = await get_active_guest(db, guest_id)
    if guest is None:
        raise GuestSessionNotFound()

    try:
        retired = await db.execute(
            update(GuestSession)
            .where(GuestSession.id == guest.id, GuestSession.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        if retired.rowcount != 1:
            await db.rollback()
            raise GuestSessionNotFound()

        claimed = await db.execute(
            update(TestResult)
            .where(TestResult.guest_session_id == guest.id)
            .values(user_id=user_id, guest_session_id=None)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise

    logger.info(
        "Claimed %d test results for user %s from guest session %s",
        claimed.rowcount, user_id, guest.id,
    )
    return {"claimed_count": claimed.rowcount}


async def reconcile_on_auth(
    db: AsyncSession, guest_id: str | None, user_id: int
) -> dict[str, Any]:
    """Best-effort reconciliation for the login and registration flows.

    Database errors and unknown or already claimed guests are logged and
    reported as zero claimed results, so they never fail a login.
    """
    if not guest_id:
        return {"claimed_count": 0}
    try:
        return await reconcile(db, guest_id, user_id)
    except GuestSessionNotFound:
        logger.info("No active guest session to claim for user %s", user_id)
    except SQLAlchemyError:
        logger.warning(
            "Failed to claim guest results for user %s", user_id, exc_info=True
        )
    return {"claimed_count": 0}
