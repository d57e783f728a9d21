import os

# Must be set before messenger.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("AUTH_JWT_KEY", "test-identity-secret")
os.environ.setdefault("AUTH_JWT_ALGORITHMS", "HS256")

import pytest
import pytest_asyncio
import boto3
from botocore.config import Config
from httpx import AsyncClient, ASGITransport
from jose import jwt
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from messenger.db.database import Base, get_db, import_models
from messenger.db.database_redis import RedisManager
from messenger.schemas.user import UserSync
from messenger.services import attachment_service, user_service


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Separate connections per session, so concurrent callers really race."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'messenger.db'}")
    import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def published_events(monkeypatch):
    """Records change notifications instead of talking to Redis."""
    events = []

    async def fake_publish(channel, payload):
        events.append((channel, payload))
        return True

    monkeypatch.setattr(RedisManager, "publish_event", staticmethod(fake_publish))
    return events


@pytest.fixture(autouse=True)
def s3_client():
    client = boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        config=Config(signature_version="s3v4"),
    )
    attachment_service.set_s3_client(client)
    yield client
    attachment_service.set_s3_client(None)


@pytest.fixture
def make_user(db):
    """Syncs a user from a fake identity and returns its internal id."""
    async def _make_user(subject: str, name: str | None = None) -> int:
        user = await user_service.sync_user(
            db, subject, UserSync(name=name or subject.title(), email=f"{subject}@example.com")
        )
        return user.id
    return _make_user


def make_token(subject: str) -> str:
    return jwt.encode({"sub": subject}, os.environ["AUTH_JWT_KEY"], algorithm="HS256")


def auth_headers(subject: str) -> dict:
    return {"Authorization": f"Bearer {make_token(subject)}"}


@pytest_asyncio.fixture
async def client(session_factory):
    from messenger.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def headers_for():
    return auth_headers
