"""Single-use test session tokens.

A session token proves that a client was handed a specific text for a
specific duration. Only the SHA-256 of the token is stored, so a leaked
database cannot be used to submit results. Consumption is one conditional
UPDATE keyed on ``is_used = false``: of any number of concurrent requests
presenting the same token, exactly one sees a row change.
"""

from __future__ import annotations

import datetime as dt
import hashlib
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from speedtype.config import settings
from speedtype.database import utcnow
from speedtype.errors import InvalidOrExpiredSession
from speedtype.models import TestSession
from speedtype.owners import Owner, describe, owner_columns, owner_from_row

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32  # 256 bits


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """One-way hash of a session token, the only form that is persisted."""
    return hashlib.sha256(token.encode()).hexdigest()


def hash_string(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


@dataclass(frozen=True)
class Fingerprint:
    """Where a request came from; compared between issue and consume."""

    ip_address: Optional[str] = None
    user_agent_hash: Optional[str] = None

    @classmethod
    def from_raw(cls, ip_address: Optional[str], user_agent: Optional[str]) -> "Fingerprint":
        return cls(
            ip_address=ip_address or None,
            user_agent_hash=hash_string(user_agent) if user_agent else None,
        )


@dataclass(frozen=True)
class IssuedSession:
    session_id: int
    session_token: str
    text_id: int
    duration_seconds: int
    issued_at: dt.datetime
    expires_at: dt.datetime


@dataclass(frozen=True)
class SessionContext:
    """What a consumed token was bound to."""

    session_id: int
    owner: Owner
    text_id: int
    duration_seconds: int


async def issue(
    db: AsyncSession,
    owner: Owner,
    text_id: int,
    duration_seconds: int,
    fingerprint: Fingerprint,
    *,
    ttl_seconds: int | None = None,
) -> IssuedSession:
    """Mint a token for ``text_id`` and persist its hash.

    The returned plaintext token is the only copy; it cannot be recovered later.
    Raises InvalidOwner if ``owner`` is not a user or guest owner.
    """
    columns = owner_columns(owner)
    token = generate_token()
    issued_at = utcnow()
    expires_at = issued_at + dt.timedelta(
        seconds=ttl_seconds or settings.test_session_ttl_seconds
    )

    session = TestSession(
        token_hash=hash_token(token),
        text_id=text_id,
        duration_seconds=duration_seconds,
        issued_at=issued_at,
        expires_at=expires_at,
        is_used=False,
        ip_address=fingerprint.ip_address,
        user_agent_hash=fingerprint.user_agent_hash,
        **columns,
    )
    db.add(session)
    await db.commit()

    logger.info(
        "Issued test session %s for %s (text=%s, duration=%ss)",
        session.id, describe(owner), text_id, duration_seconds,
    )
    return IssuedSession(
        session_id=session.id,
        session_token=token,
        text_id=text_id,
        duration_seconds=duration_seconds,
        issued_at=issued_at,
        expires_at=expires_at,
    )


async def consume(
    db: AsyncSession,
    session_token: str,
    fingerprint: Fingerprint,
) -> SessionContext:
    """Invalidate a token and return what it was bound to.

    Raises InvalidOrExpiredSession if the token is unknown, already used, or
    past its expiry. A fingerprint mismatch only logs a warning unless
    STRICT_FINGERPRINT is on, in which case the token is still spent.
    """
    if not session_token or not isinstance(session_token, str):
        raise InvalidOrExpiredSession()

    token_hash = hash_token(session_token)
    now = utcnow()

    result = await db.execute(
        update(TestSession)
        .where(
            TestSession.token_hash == token_hash,
            TestSession.is_used.is_(False),
            TestSession.expires_at > now,
        )
        .values(is_used=True, used_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        logger.info("Rejected test session token (unknown, used or expired)")
        raise InvalidOrExpiredSession()
    await db.commit()

    row = (
        await db.execute(select(TestSession).where(TestSession.token_hash == token_hash))
    ).scalar_one()

    mismatched = _fingerprint_mismatches(row, fingerprint)
    if mismatched and settings.strict_fingerprint:
        logger.warning(
            "Refusing test session %s: %s mismatch (strict mode)",
            row.id, ", ".join(mismatched),
        )
        raise InvalidOrExpiredSession()

    return SessionContext(
        session_id=row.id,
        owner=owner_from_row(row),
        text_id=row.text_id,
        duration_seconds=row.duration_seconds,
    )


def _fingerprint_mismatches(row: TestSession, fingerprint: Fingerprint) -> list[str]:
    """Compare a request against the issuing request; log every difference."""
    mismatched: list[str] = []
    if (
        fingerprint.ip_address
        and row.ip_address
        and fingerprint.ip_address != row.ip_address
    ):
        # Proxies and mobile networks change IPs mid-test
        logger.warning(
            "IP address mismatch for test session %s: issued to %s, submitted from %s",
            row.id, row.ip_address, fingerprint.ip_address,
        )
        mismatched.append("ip")
    if (
        fingerprint.user_agent_hash
        and row.user_agent_hash
        and fingerprint.user_agent_hash != row.user_agent_hash
    ):
        logger.warning("User agent mismatch for test session %s", row.id)
        mismatched.append("user_agent")
    return mismatched


async def session_stats(db: AsyncSession, owner: Owner | None = None) -> dict[str, Any]:
    """Counts of issued sessions by state, optionally for one owner."""
    now = utcnow()
    query = select(
        func.count(TestSession.id),
        func.sum(case((TestSession.is_used.is_(True), 1), else_=0)),
        func.sum(
            case(
                ((TestSession.is_used.is_(False)) & (TestSession.expires_at > now), 1),
                else_=0,
            )
        ),
        func.sum(
            case(
                ((TestSession.is_used.is_(False)) & (TestSession.expires_at <= now), 1),
                else_=0,
            )
        ),
        func.avg(TestSession.duration_seconds),
    )
    if owner is not None:
        for column, value in owner_columns(owner).items():
            if value is not None:
                query = query.where(getattr(TestSession, column) == value)

    total, used, active, expired, avg_duration = (await db.execute(query)).one()
    return {
        "total_sessions": total or 0,
        "used_sessions": used or 0,
        "active_sessions": active or 0,
        "expired_sessions": expired or 0,
        "avg_duration": round(avg_duration, 1) if avg_duration is not None else None,
    }
