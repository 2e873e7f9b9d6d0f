"""speedtype – FastAPI application entry point."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from speedtype.config import settings
from speedtype.database import async_session, init_db
from speedtype.errors import TypingTestError
from speedtype.seed import seed_default_texts
from speedtype.services.retention import run_retention_sweep

# --- Configure logging so speedtype.* loggers are visible alongside uvicorn ---
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:    %(name)s - %(message)s",
    stream=sys.stdout,
    force=True,  # override uvicorn's config
)

log = logging.getLogger(__name__)

# --- APScheduler for retention sweeps ---
scheduler = AsyncIOScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    # --- startup ---
    await init_db()
    async with async_session() as db:
        await seed_default_texts(db)

    scheduler.add_job(
        run_retention_sweep,
        trigger=CronTrigger(minute=15, timezone="UTC"),
        id="retention_sweep",
        name="Delete stale test sessions and retire idle guests",
        replace_existing=True,
    )
    scheduler.start()
    log.info("Scheduler started – retention sweep runs hourly at :15 UTC")

    yield

    # --- shutdown ---
    scheduler.shutdown(wait=False)
    log.info("Scheduler shut down")


app = FastAPI(title="speedtype", version="0.1.0", lifespan=lifespan)

# Signed cookie session carries user_id for users and guest_id for guests
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    session_cookie="speedtype_session",
    max_age=settings.session_max_age,
    same_site="lax",
    https_only=settings.https_only,
)


@app.exception_handler(TypingTestError)
async def typing_test_error_handler(request: Request, exc: TypingTestError):
    log.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


# --- Register routers ---
from speedtype.routes.auth_routes import router as auth_router  # noqa: E402
from speedtype.routes.leaderboard import router as leaderboard_router  # noqa: E402
from speedtype.routes.typing_tests import router as typing_tests_router  # noqa: E402

app.include_router(auth_router, prefix="/api")
app.include_router(typing_tests_router, prefix="/api")
app.include_router(leaderboard_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
