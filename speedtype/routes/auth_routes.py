"""Registration, login and logout. Both entry points claim guest history."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from speedtype.auth import (
    get_current_user,
    hash_password,
    login_session,
    verify_password,
)
from speedtype.database import get_db
from speedtype.models import User
from speedtype.schemas import LoginBody, RegisterBody
from speedtype.services.guests import reconcile_on_auth
from speedtype.services.leaderboard import get_user_rank

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth")


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "best_wpm": round(user.best_wpm, 2),
        "avg_wpm": round(user.avg_wpm, 2),
        "total_tests": user.total_tests,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


@router.post("/register")
async def register(
    request: Request,
    body: RegisterBody,
    db: AsyncSession = Depends(get_db),
):
    """Create an account, log it in and claim any guest results."""
    result = await db.execute(
        select(User).where(or_(User.username == body.username, User.email == body.email))
    )
    existing = result.scalars().first()
    if existing is not None:
        field = "Username" if existing.username == body.username else "Email"
        return JSONResponse({"error": f"{field} already registered"}, status_code=409)

    user = User(
        username=body.username,
        email=body.email,
        password_hash=hash_password(body.password),
        is_active=True,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration
        await db.rollback()
        return JSONResponse({"error": "Username or email already registered"}, status_code=409)
    logger.info("Registered user %s", user.id)

    user_id = user.id
    claimed = await reconcile_on_auth(db, request.session.get("guest_id"), user_id)
    # A failed claim rolls the session back and expires loaded rows
    await db.refresh(user)
    login_session(request, user)

    return JSONResponse(
        {"user": _user_payload(user), "claimed_results": claimed["claimed_count"]},
        status_code=201,
    )


@router.post("/login")
async def login(
    request: Request,
    body: LoginBody,
    db: AsyncSession = Depends(get_db),
):
    """Verify credentials, start a session and claim any guest results."""
    identifier = body.username.strip()
    result = await db.execute(
        select(User).where(
            or_(User.username == identifier, User.email == identifier),
            User.is_active.is_(True),
        )
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(body.password, user.password_hash):
        return JSONResponse({"error": "Invalid username or password"}, status_code=401)

    user_id = user.id
    claimed = await reconcile_on_auth(db, request.session.get("guest_id"), user_id)
    await db.refresh(user)
    login_session(request, user)

    return JSONResponse(
        {"user": _user_payload(user), "claimed_results": claimed["claimed_count"]}
    )


@router.post("/logout")
async def logout(request: Request):
    """Clear the session."""
    request.session.clear()
    return JSONResponse({"message": "Logout successful"})


@router.get("/me")
async def me(request: Request, db: AsyncSession = Depends(get_db)):
    """Profile, stats and leaderboard rank of the logged-in user."""
    user = await get_current_user(request, db)
    if not user:
        return JSONResponse({"error": "Login required"}, status_code=401)

    payload = _user_payload(user)
    payload["rank"] = await get_user_rank(db, user.id)
    return JSONResponse({"user": payload})
