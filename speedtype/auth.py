"""Password hashing and cookie-session identity helpers."""

from __future__ import annotations

import hashlib
import hmac
import secrets

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from speedtype.models import User
from speedtype.owners import GuestOwner, Owner, UserOwner
from speedtype.services.guests import create_guest_session, get_active_guest, touch_guest
from speedtype.services.sessions import Fingerprint

PBKDF2_ITERATIONS = 200_000


def hash_password(password: str) -> str:
    """Hash a password with PBKDF2-SHA256 and a random salt (``salt$hash``)."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), bytes.fromhex(salt), PBKDF2_ITERATIONS
    ).hex()
    return f"{salt}${digest}"


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its stored hash."""
    salt, _, expected = password_hash.partition("$")
    if not salt or not expected:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), bytes.fromhex(salt), PBKDF2_ITERATIONS
    ).hex()
    return hmac.compare_digest(digest, expected)


def login_session(request: Request, user: User) -> None:
    """Mark the cookie session as belonging to ``user``; drops any guest id."""
    request.session.pop("guest_id", None)
    request.session["user_id"] = user.id
    request.session["username"] = user.username


def get_session_user(request: Request) -> dict | None:
    """Get the current user info from the session, or None if not logged in."""
    user_id = request.session.get("user_id")
    if not user_id:
        return None
    return {
        "user_id": user_id,
        "username": request.session.get("username", ""),
    }


async def get_current_user(request: Request, db: AsyncSession) -> User | None:
    """The logged-in, still active user, or None."""
    session_user = get_session_user(request)
    if not session_user:
        return None
    result = await db.execute(
        select(User).where(User.id == session_user["user_id"], User.is_active.is_(True))
    )
    return result.scalar_one_or_none()


def request_fingerprint(request: Request) -> Fingerprint:
    ip = request.client.host if request.client else None
    return Fingerprint.from_raw(ip, request.headers.get("user-agent"))


async def resolve_identity(
    request: Request,
    db: AsyncSession,
    *,
    create_guest: bool = False,
) -> Owner | None:
    """Who is making this request.

    A logged-in user wins over any guest id left in the cookie. With
    ``create_guest`` an anonymous request gets a new guest session.
    """
    session_user = get_session_user(request)
    if session_user:
        return UserOwner(session_user["user_id"])

    guest = await get_active_guest(db, request.session.get("guest_id"))
    if guest is not None:
        await touch_guest(db, guest)
        return GuestOwner(guest.id)

    if create_guest:
        guest = await create_guest_session(db)
        request.session["guest_id"] = guest.guest_id
        return GuestOwner(guest.id)
    return None
