"""The two request-level operations of a typing test: get a text, submit a result.

Flow: pick text → issue token → (client types) → validate counters →
consume token → score on the server → record result and stats.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from speedtype.owners import GuestOwner, Owner, describe
from speedtype.services import results, scoring, sessions, texts
from speedtype.services.results import result_to_dict
from speedtype.services.sessions import Fingerprint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawCounters:
    """What the client reports after a test."""

    correct_chars: int
    incorrect_chars: int
    total_chars: int
    duration_seconds: int
    text_snippet: Optional[str] = None


async def get_test_assignment(
    db: AsyncSession,
    owner: Owner,
    language: str,
    difficulty: str,
    duration_seconds: int,
    fingerprint: Fingerprint,
) -> dict[str, Any]:
    """Pick a text and bind it to a fresh single-use session token.

    Raises NoTextAvailable or InvalidOwner.
    """
    text = await texts.pick_text(db, language, difficulty)
    issued = await sessions.issue(db, owner, text.id, duration_seconds, fingerprint)
    return {
        "text": {
            "id": text.id,
            "content": text.content,
            "language": text.language,
            "difficulty": text.difficulty,
            "word_count": text.word_count,
        },
        "session_token": issued.session_token,
        "duration_seconds": issued.duration_seconds,
        "expires_at": issued.expires_at.isoformat(),
    }


async def submit_result(
    db: AsyncSession,
    session_token: str,
    counters: RawCounters,
    fingerprint: Fingerprint,
    identity: Owner | None = None,
) -> dict[str, Any]:
    """Spend a session token and record the scored result.

    Counters are validated before the token is touched, so a malformed
    submission can be corrected and resent. Once the token is consumed any
    later failure is final for it. The result belongs to whoever the token
    was issued to; ``identity`` is only compared for logging.

    Raises InvalidMetrics, InvalidOrExpiredSession or DurationMismatch.
    """
    scoring.validate_counters(
        counters.correct_chars,
        counters.incorrect_chars,
        counters.total_chars,
        counters.duration_seconds,
    )

    context = await sessions.consume(db, session_token, fingerprint)
    if identity is not None and identity != context.owner:
        logger.warning(
            "Test session %s submitted by %s but issued to %s",
            context.session_id, describe(identity), describe(context.owner),
        )

    # Score over the duration the server issued, not the one the client claims
    metrics = scoring.compute_metrics(
        counters.correct_chars,
        counters.incorrect_chars,
        counters.total_chars,
        context.duration_seconds,
    )
    outcome = await results.record(
        db,
        context,
        declared_duration=counters.duration_seconds,
        wpm=metrics["wpm"],
        raw_wpm=metrics["raw_wpm"],
        accuracy=metrics["accuracy"],
        correct_chars=counters.correct_chars,
        incorrect_chars=counters.incorrect_chars,
        total_chars=counters.total_chars,
        text_snippet=counters.text_snippet,
    )
    return {
        "result": result_to_dict(outcome.result),
        "is_new_record": outcome.is_new_record,
        "is_guest": isinstance(context.owner, GuestOwner),
    }
