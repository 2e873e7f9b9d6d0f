"""Persist scored results and keep each user's rolling stats current."""

from __future__ import annotations

import datetime as dt
import logging
import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from speedtype.config import settings
from speedtype.database import utcnow
from speedtype.errors import DurationMismatch, InvalidMetrics, InvalidOwner
from speedtype.models import TestResult, TestSession, TestText, User
from speedtype.owners import UserOwner, describe, owner_columns
from speedtype.services.scoring import validate_counters
from speedtype.services.sessions import SessionContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordOutcome:
    result: TestResult
    is_new_record: bool


async def record(
    db: AsyncSession,
    context: SessionContext,
    *,
    declared_duration: int,
    wpm: float,
    raw_wpm: float,
    accuracy: float,
    correct_chars: int,
    incorrect_chars: int,
    total_chars: int,
    text_snippet: str | None = None,
) -> RecordOutcome:
    """Store a result for the owner bound to ``context``.

    For user owners the stats update happens in the same commit as the
    insert, so either both are applied or neither is.
    """
    if declared_duration != context.duration_seconds:
        logger.warning(
            "Duration mismatch for test session %s: issued %ss, submitted %ss",
            context.session_id, context.duration_seconds, declared_duration,
        )
        raise DurationMismatch()
    validate_counters(correct_chars, incorrect_chars, total_chars, declared_duration)
    for name, value in (("wpm", wpm), ("raw_wpm", raw_wpm), ("accuracy", accuracy)):
        if value < 0 or not math.isfinite(value):
            raise InvalidMetrics(f"{name} must be a non-negative number")

    if text_snippet:
        text_snippet = text_snippet[: settings.snippet_max_length]

    result = TestResult(
        session_id=context.session_id,
        wpm=wpm,
        raw_wpm=raw_wpm,
        accuracy=accuracy,
        correct_chars=correct_chars,
        incorrect_chars=incorrect_chars,
        total_chars=total_chars,
        duration_seconds=declared_duration,
        text_snippet=text_snippet or None,
        created_at=utcnow(),
        **owner_columns(context.owner),
    )

    is_new_record = False
    try:
        db.add(result)
        await db.flush()
        if isinstance(context.owner, UserOwner):
            is_new_record = await _apply_user_stats(db, context.owner.user_id, wpm)
        await db.commit()
    except (SQLAlchemyError, InvalidOwner):
        await db.rollback()
        logger.exception(
            "Failed to record result for test session %s", context.session_id
        )
        raise

    logger.info(
        "Recorded result %s for %s: wpm=%.2f accuracy=%.2f%s",
        result.id, describe(context.owner), wpm, accuracy,
        " (new personal best)" if is_new_record else "",
    )
    return RecordOutcome(result=result, is_new_record=is_new_record)


async def _apply_user_stats(db: AsyncSession, user_id: int, wpm: float) -> bool:
    """Fold one WPM value into the user's stats; True if it is a new best.

    Both statements compute from the stored column values, never from values
    read into Python, so concurrent submissions cannot lose an update.
    """
    improved = await db.execute(
        update(User)
        .where(User.id == user_id, User.best_wpm < wpm)
        .values(best_wpm=wpm)
        .execution_options(synchronize_session=False)
    )
    # SET clauses render in column order, so avg_wpm sees the old total_tests
    # even on engines that evaluate assignments left to right.
    updated = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(
            avg_wpm=(User.avg_wpm * User.total_tests + wpm) / (User.total_tests + 1),
            total_tests=User.total_tests + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if updated.rowcount != 1:
        raise InvalidOwner(f"User {user_id} not found")
    return improved.rowcount == 1


async def user_stats(db: AsyncSession, user_id: int) -> dict[str, Any] | None:
    result = await db.execute(
        select(User.best_wpm, User.avg_wpm, User.total_tests).where(User.id == user_id)
    )
    row = result.one_or_none()
    if row is None:
        return None
    return {
        "best_wpm": round(row.best_wpm, 2),
        "avg_wpm": round(row.avg_wpm, 2),
        "total_tests": row.total_tests,
    }


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


def _timeframe_start(timeframe: str) -> dt.datetime | None:
    if timeframe not in settings.timeframes:
        raise ValueError(f"timeframe must be one of {', '.join(settings.timeframes)}")
    days = settings.timeframes[timeframe]
    if days is None:
        return None
    now = utcnow()
    if days == 0:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    return now - dt.timedelta(days=days)


def result_to_dict(result: TestResult, text: TestText | None = None) -> dict[str, Any]:
    data = {
        "id": result.id,
        "wpm": result.wpm,
        "raw_wpm": result.raw_wpm,
        "accuracy": result.accuracy,
        "correct_chars": result.correct_chars,
        "incorrect_chars": result.incorrect_chars,
        "total_chars": result.total_chars,
        "duration_seconds": result.duration_seconds,
        "text_snippet": result.text_snippet,
        "created_at": result.created_at.isoformat() if result.created_at else None,
    }
    if text is not None:
        data["text"] = {
            "id": text.id,
            "language": text.language,
            "difficulty": text.difficulty,
            "word_count": text.word_count,
        }
    return data


def pagination(page: int, limit: int, total: int) -> dict[str, Any]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "has_next": page * limit < total,
        "has_prev": page > 1,
    }


async def _list_results(db: AsyncSession, condition, page: int, limit: int) -> dict[str, Any]:
    total = (
        await db.execute(select(func.count(TestResult.id)).where(*condition))
    ).scalar_one()

    rows = await db.execute(
        select(TestResult, TestText)
        .join(TestSession, TestResult.session_id == TestSession.id)
        .join(TestText, TestSession.text_id == TestText.id)
        .where(*condition)
        .order_by(TestResult.created_at.desc(), TestResult.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return {
        "results": [result_to_dict(r, t) for r, t in rows.all()],
        "pagination": pagination(page, limit, total),
    }


async def list_user_results(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    limit: int = 20,
    timeframe: str = "all",
) -> dict[str, Any]:
    """A user's results, newest first, optionally limited to a timeframe."""
    condition = [TestResult.user_id == user_id]
    since = _timeframe_start(timeframe)
    if since is not None:
        condition.append(TestResult.created_at >= since)
    return await _list_results(db, condition, page, limit)


async def list_guest_results(
    db: AsyncSession,
    guest_session_id: int,
    page: int = 1,
    limit: int = 20,
) -> dict[str, Any]:
    """Results still owned by a guest session, newest first."""
    return await _list_results(
        db, [TestResult.guest_session_id == guest_session_id], page, limit
    )
