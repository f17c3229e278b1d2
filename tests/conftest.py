"""Shared fixtures: a controllable clock, a fresh in-memory store per test,
an aiosqlite database under tmp_path and an HTTP client bound to the app."""

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from contentgate.app.api.dependencies import get_email_sender, get_store
from contentgate.app.core.config import settings
from contentgate.app.core.kv_store import InMemoryKVStore, reset_kv_store
from contentgate.app.db import models  # noqa: F401 - import to register models
from contentgate.app.db.async_session import get_db
from contentgate.app.db.base import Base
from contentgate.app.db.models import Article, User


class MutableClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeEmailSender:
    """Records messages instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[dict[str, str]] = []
        self.fail = False

    async def send(self, to: str, subject: str, text: str, html: str) -> None:
        if self.fail:
            raise ConnectionError("SMTP server unreachable")
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})

    def last_code(self, to: Optional[str] = None) -> str:
        messages = [m for m in self.sent if to is None or m["to"] == to]
        assert messages, "no e-mail was sent"
        match = re.search(r"\b(\d{6})\b", messages[-1]["text"])
        assert match, "e-mail carries no code"
        return match.group(1)


def _sqlite_url_from_absolute_path(path: str) -> str:
    # SQLAlchemy expects 4 slashes for absolute paths.
    return f"sqlite+aiosqlite:////{path.lstrip('/')}"


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset the global store before and after each test."""
    reset_kv_store()
    yield
    reset_kv_store()


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def store(clock: MutableClock) -> InMemoryKVStore:
    return InMemoryKVStore(clock=clock)


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def dev_settings(monkeypatch):
    """Development settings with view limits on and captcha off."""
    monkeypatch.setattr(settings, "app_env", "development")
    monkeypatch.setattr(settings, "enforce_view_limits", True)
    monkeypatch.setattr(settings, "view_limit_free", 15)
    monkeypatch.setattr(settings, "view_limit_anonymous", 3)
    monkeypatch.setattr(settings, "turnstile_secret_key", "")
    return settings


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "contentgate_test.db"
    engine = create_async_engine(_sqlite_url_from_absolute_path(str(db_path)))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest.fixture
def app(dev_settings, session_maker, store, email_sender):
    from contentgate.app.main import create_app

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application = create_app()
    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_store] = lambda: store
    application.dependency_overrides[get_email_sender] = lambda: email_sender
    return application


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as c:
        yield c


async def _create_user(session_maker, email: str, role: str = "FREE_USER", **fields: Any) -> User:
    async with session_maker() as session:
        values: dict[str, Any] = {"name": email.split("@")[0], "email_verified": True}
        values.update(fields)
        user = User(id=str(uuid.uuid4()), email=email, role=role, **values)
        session.add(user)
        await session.commit()
        return user


async def _create_article(session_maker, author: User, slug: str, **fields: Any) -> Article:
    values: dict[str, Any] = {
        "title": slug.replace("-", " ").title(),
        "excerpt": f"Excerpt of {slug}",
        "content": f"Full body of {slug}",
        "published": True,
        "premium": False,
        "category": "Engineering",
        "tags": ["python"],
        "read_time": 4,
        "published_at": datetime(2026, 1, 5, tzinfo=timezone.utc),
    }
    values.update(fields)
    async with session_maker() as session:
        article = Article(id=str(uuid.uuid4()), slug=slug, author_id=author.id, **values)
        session.add(article)
        await session.commit()
        return article


async def _sign_in(client: AsyncClient, email_sender: FakeEmailSender, email: str) -> dict:
    """Run the full code sign-in flow and return the verify payload."""
    resp = await client.post("/api/auth/request-otp", json={"email": email})
    assert resp.status_code == 200, resp.text
    code = email_sender.last_code(email.strip().lower())

    resp = await client.post("/api/auth/verify-otp", json={"email": email, "otp": code})
    assert resp.status_code == 200, resp.text
    payload = resp.json()

    resp = await client.post(
        "/api/auth/session",
        json={"email": email, "loginToken": payload["loginToken"]},
    )
    assert resp.status_code == 200, resp.text
    return payload


@pytest.fixture
def make_user(session_maker):
    async def _make(email: str, role: str = "FREE_USER", **fields: Any) -> User:
        return await _create_user(session_maker, email, role, **fields)

    return _make


@pytest.fixture
def make_article(session_maker):
    async def _make(author: User, slug: str, **fields: Any) -> Article:
        return await _create_article(session_maker, author, slug, **fields)

    return _make


@pytest.fixture
def sign_in(client, email_sender):
    async def _run(email: str) -> dict:
        return await _sign_in(client, email_sender, email)

    return _run
