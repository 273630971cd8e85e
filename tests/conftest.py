import itertools
import os
import tempfile
from collections.abc import AsyncGenerator
from typing import Any

_workdir = tempfile.mkdtemp(prefix="vibe-loop-tests-")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["STORAGE_PATH"] = os.path.join(_workdir, "uploads")
os.environ["STAGING_PATH"] = os.path.join(_workdir, "staging")
os.environ["LOG_DIR"] = os.path.join(_workdir, "logs")
os.environ["GLOBAL_RATE_LIMIT_TIMES"] = "100000"
os.environ["AUTH_RATE_LIMIT_TIMES"] = "100000"
os.environ["UPLOAD_RATE_LIMIT_TIMES"] = "100000"

import pytest  # noqa: E402
from fakeredis import FakeAsyncRedis  # noqa: E402
from fastapi_limiter import FastAPILimiter  # noqa: E402
from httpx import ASGITransport  # noqa: E402
from httpx import AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.auth.auth import create_access_token  # noqa: E402
from app.auth.auth import get_password_hash  # noqa: E402
from app.db.session import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import AudioRecord  # noqa: E402
from app.models import Base  # noqa: E402
from app.models import User  # noqa: E402
from audio.storage import LocalStorage  # noqa: E402
from audio.storage import get_storage  # noqa: E402
from user.user import Role  # noqa: E402

PASSWORD = "securepassword123"
_keys = itertools.count(1)


@pytest.fixture(autouse=True)
async def setup_rate_limiting() -> AsyncGenerator[None, Any]:
    redis = FakeAsyncRedis()
    await redis.flushall()
    await FastAPILimiter.init(redis)
    yield
    await FastAPILimiter.close()


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], Any]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, Any]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path / "uploads", "/uploads")


@pytest.fixture
async def client(session_factory, storage) -> AsyncGenerator[AsyncClient, Any]:
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    async def _make_user(
        username: str = "listener",
        email: str | None = None,
        role: Role = Role.USER,
        is_active: bool = True,
    ) -> User:
        user = User(
            username=username,
            email=email or f"{username}@example.com",
            hashed_password=get_password_hash(PASSWORD),
            role=role,
            is_active=is_active,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_audio(db):
    async def _make_audio(owner: User, **fields) -> AudioRecord:
        values = {
            "title": "Clip",
            "storage_key": f"audio-test-{next(_keys)}.mp3",
            "storage_backend": "local",
            "original_filename": "clip.mp3",
            "file_size": 2048,
            "mime_type": "audio/mpeg",
            "mood": "calm",
            "environment": "home",
            "is_public": True,
            "tags": [],
        }
        values.update(fields)
        record = AudioRecord(owner_id=owner.id, **values)
        db.add(record)
        await db.commit()
        await db.refresh(record)
        return record

    return _make_audio


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _auth_headers
