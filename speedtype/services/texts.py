"""Passage storage and random selection for typing tests."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from speedtype.errors import NoTextAvailable
from speedtype.models import TestText

logger = logging.getLogger(__name__)


def count_words(content: str) -> int:
    return len(content.split())


async def pick_text(db: AsyncSession, language: str, difficulty: str) -> TestText:
    """Return a uniformly random active text for the language and difficulty."""
    result = await db.execute(
        select(TestText)
        .where(
            TestText.language == language,
            TestText.difficulty == difficulty,
            TestText.is_active.is_(True),
        )
        .order_by(func.random())
        .limit(1)
    )
    text = result.scalar_one_or_none()
    if text is None:
        logger.info("No active text for language=%s difficulty=%s", language, difficulty)
        raise NoTextAvailable()
    return text


async def create_text(
    db: AsyncSession,
    content: str,
    language: str = "en",
    difficulty: str = "medium",
    word_count: int | None = None,
) -> TestText:
    """Store a new passage; the word count is derived from the content if omitted."""
    content = content.strip()
    text = TestText(
        content=content,
        language=language,
        difficulty=difficulty,
        word_count=word_count or count_words(content),
        is_active=True,
    )
    db.add(text)
    await db.commit()
    return text


async def count_texts(db: AsyncSession, *, active_only: bool = True) -> int:
    query = select(func.count(TestText.id))
    if active_only:
        query = query.where(TestText.is_active.is_(True))
    result = await db.execute(query)
    return result.scalar_one()
