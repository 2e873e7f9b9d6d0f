"""Leaderboard API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from speedtype.auth import get_session_user
from speedtype.config import settings
from speedtype.database import get_db
from speedtype.services.leaderboard import get_leaderboard, get_user_rank

router = APIRouter(prefix="/leaderboard")


@router.get("")
async def api_leaderboard(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=settings.page_size_max),
    db: AsyncSession = Depends(get_db),
):
    return JSONResponse(await get_leaderboard(db, page, limit))


@router.get("/me")
async def api_my_rank(request: Request, db: AsyncSession = Depends(get_db)):
    user = get_session_user(request)
    if not user:
        return JSONResponse({"error": "Login required"}, status_code=401)
    return JSONResponse({"rank": await get_user_rank(db, user["user_id"])})
