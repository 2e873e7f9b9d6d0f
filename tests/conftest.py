import sys
from pathlib import Path

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from speedtype import models  # noqa: E402
from speedtype.auth import hash_password  # noqa: E402
from speedtype.database import Base, get_db  # noqa: E402
from speedtype.seed import seed_default_texts  # noqa: E402
from speedtype.services.guests import create_guest_session  # noqa: E402


@pytest.fixture
def anyio_backend():
    """Force anyio to use asyncio backend for async tests."""

    return "asyncio"


@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def text(db):
    row = models.TestText(
        content="The quick brown fox jumps over the lazy dog.",
        language="en",
        difficulty="medium",
        word_count=9,
        is_active=True,
    )
    db.add(row)
    await db.commit()
    return row


@pytest.fixture
async def user(db):
    row = models.User(
        username="typist",
        email="typist@example.com",
        password_hash=hash_password("correct horse"),
        is_active=True,
    )
    db.add(row)
    await db.commit()
    return row


@pytest.fixture
async def guest(db):
    return await create_guest_session(db)


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app, backed by the per-test database."""
    from main import app

    async with session_factory() as session:
        await seed_default_texts(session)

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    app.dependency_overrides.clear()
