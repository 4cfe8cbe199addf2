"""
Pytest configuration and fixtures for testing
"""
import os

# Settings are read at import time, so the test environment goes first
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_123")
os.environ.setdefault("STRIPE_LIMITED_TIME_PRODUCT_ID", "prod_limited")
os.environ.setdefault("STRIPE_LIMITED_TIME_PRICE_ID", "price_limited")
os.environ.setdefault("STRIPE_PRO_PRODUCT_ID", "prod_pro")
os.environ.setdefault("STRIPE_PRO_PRICE_ID", "price_pro")
os.environ.setdefault("CRON_SECRET", "cron-test-secret")
os.environ.setdefault("AXIESTUDIO_APP_URL", "https://axie.test")
os.environ.setdefault("AXIESTUDIO_API_KEY", "axie-test-key")

import asyncio
import json
from datetime import datetime, timedelta
from urllib.parse import parse_qsl

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from database import Base, get_db
import database_models  # noqa: F401
from auth_utils import ALGORITHM, create_jwt, hash_password
from config.settings import settings
from crud.user import UserRepository
from services.access_service import AccessService
from crud.access import AccessStore
from services.axiestudio_service import AxieStudioClient, get_axiestudio_client

AXIE_API_KEY = "axie-test-key"
STRONG_PASSWORD = "StrongPass123!"


class FakeAxieStudio:
    """In-memory stand-in for the AxieStudio admin API, served through httpx.MockTransport"""

    def __init__(self):
        self.users = {}
        self.passwords = {}
        self.calls = []
        self._next_id = 1

    def add_user(self, email, password="ToolPass123!", is_active=True):
        user_id = f"axie-{self._next_id}"
        self._next_id += 1
        self.users[user_id] = {"id": user_id, "username": email, "email": email, "is_active": is_active}
        self.passwords[email] = password
        return self.users[user_id]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))

        if request.method == "POST" and path == "/api/v1/login":
            form = dict(parse_qsl(request.content.decode()))
            if form.get("username") in self.passwords and self.passwords[form["username"]] == form.get("password"):
                return httpx.Response(200, json={"access_token": f"token-{form['username']}", "token_type": "bearer"})
            return httpx.Response(401, json={"detail": "Incorrect username or password"})

        if request.headers.get("x-api-key") != AXIE_API_KEY:
            return httpx.Response(403, json={"detail": "Invalid API key"})

        if path == "/api/v1/users/" and request.method == "GET":
            return httpx.Response(200, json={"total_count": len(self.users), "users": list(self.users.values())})

        if path == "/api/v1/users/" and request.method == "POST":
            body = json.loads(request.content)
            if any(u["username"] == body["username"] for u in self.users.values()):
                return httpx.Response(400, json={"detail": "This username is unavailable."})
            # The real API ignores is_active on creation; users start inactive
            created = self.add_user(body["username"], body["password"], is_active=False)
            return httpx.Response(201, json=created)

        if path.startswith("/api/v1/users/") and request.method == "PATCH":
            user_id = path.rsplit("/", 1)[-1]
            if user_id not in self.users:
                return httpx.Response(404, json={"detail": "User not found"})
            self.users[user_id].update(json.loads(request.content))
            return httpx.Response(200, json=self.users[user_id])

        return httpx.Response(404, json={"detail": "Not found"})

    def by_email(self, email):
        for user in self.users.values():
            if user["username"] == email:
                return user
        return None


@pytest.fixture
def test_engine(tmp_path):
    """
    File-backed SQLite engine per test. NullPool keeps connections from
    outliving the event loop that opened them (TestClient runs its own loop).
    """
    return create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )


async def create_tables(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(test_engine, session_factory):
    """
    Fixture that provides an isolated database session for each test.
    """
    await create_tables(test_engine)
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest.fixture
def axie():
    return FakeAxieStudio()


@pytest.fixture
def axie_client(axie):
    return AxieStudioClient(
        base_url="https://axie.test",
        api_key=AXIE_API_KEY,
        transport=httpx.MockTransport(axie.handler),
    )


@pytest.fixture
def access_service(test_db):
    return AccessService(AccessStore(test_db))


async def make_user(db, email="user@example.com", password=STRONG_PASSWORD, is_active=True):
    return await UserRepository(db).create_user({
        "email": email,
        "hashed_password": hash_password(password),
        "is_active": is_active,
    })


@pytest.fixture
def run_db(session_factory):
    """Run ``await fn(session)`` against the test database from a sync test and commit"""
    def _run(fn):
        async def runner():
            async with session_factory() as session:
                result = await fn(session)
                await session.commit()
                return result
        return asyncio.run(runner())
    return _run


@pytest.fixture
def client(test_engine, session_factory, axie_client):
    """FastAPI TestClient fixture with test database and AxieStudio overrides"""
    from main import app

    asyncio.run(create_tables(test_engine))

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_axiestudio_client] = lambda: axie_client

    yield TestClient(app)

    app.dependency_overrides.clear()


def auth_headers(user_id) -> dict:
    return {"Authorization": f"Bearer {create_jwt(str(user_id))}"}


def create_expired_jwt(user_id: str, expired_seconds_ago: int = 1) -> str:
    """Session token signed with the real key whose exp already passed"""
    payload = {"sub": user_id, "exp": datetime.utcnow() - timedelta(seconds=expired_seconds_ago)}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=ALGORITHM)
