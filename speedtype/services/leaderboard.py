"""Rank registered users by their recorded best WPM."""

from __future__ import annotations

from typing import Any

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from speedtype.models import User
from speedtype.services.results import pagination


def _ranked():
    return (
        select(User)
        .where(User.is_active.is_(True), User.total_tests > 0)
        .order_by(User.best_wpm.desc(), User.avg_wpm.desc(), User.created_at.asc(), User.id.asc())
    )


async def get_leaderboard(db: AsyncSession, page: int = 1, limit: int = 50) -> dict[str, Any]:
    total = (
        await db.execute(
            select(func.count(User.id)).where(User.is_active.is_(True), User.total_tests > 0)
        )
    ).scalar_one()

    offset = (page - 1) * limit
    result = await db.execute(_ranked().limit(limit).offset(offset))
    users = result.scalars().all()

    return {
        "results": [
            {
                "rank": offset + i + 1,
                "user_id": u.id,
                "username": u.username,
                "best_wpm": round(u.best_wpm, 2),
                "avg_wpm": round(u.avg_wpm, 2),
                "total_tests": u.total_tests,
            }
            for i, u in enumerate(users)
        ],
        "pagination": pagination(page, limit, total),
    }


async def get_user_rank(db: AsyncSession, user_id: int) -> int | None:
    """1-based position of the user on the leaderboard, None if unranked."""
    result = await db.execute(
        select(User).where(User.id == user_id, User.is_active.is_(True))
    )
    user = result.scalar_one_or_none()
    if user is None or user.total_tests == 0:
        return None

    ahead = await db.execute(
        select(func.count(User.id)).where(
            User.is_active.is_(True),
            User.total_tests > 0,
            or_(
                User.best_wpm > user.best_wpm,
                and_(User.best_wpm == user.best_wpm, User.avg_wpm > user.avg_wpm),
            ),
        )
    )
    return ahead.scalar_one() + 1
