"""
Shared pytest fixtures for the civic issue backend test suite.

Provides in-memory stores, a controllable clock, and an httpx AsyncClient
running the FastAPI app in-process.
"""

import os

# Configure before civicdesk reads the environment
os.environ["TOKEN_SCHEME"] = "dev"
os.environ["SEED_DEMO_DATA"] = "false"
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_LOGIN", "5/minute")

import base64
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio

from civicdesk.app import create_app, limiter
from civicdesk.auth import AccountService, DevTokenAuthenticator
from civicdesk.lifecycle import IssueLifecycle
from civicdesk.models import Media, MediaKind, Role
from civicdesk.store import InMemoryIssueStore, InMemoryUserStore


class FakeClock:
    def __init__(self, start: datetime = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def photo(size: int, kind: MediaKind = MediaKind.PHOTO) -> Media:
    """Media whose base64 payload decodes to exactly ``size`` bytes."""
    payload = base64.b64encode(b"\x00" * size).decode()
    return Media(type=kind, data=f"data:image/jpeg;base64,{payload}")


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def users():
    return InMemoryUserStore()


@pytest.fixture
def issues():
    return InMemoryIssueStore()


@pytest.fixture
def accounts(users, clock):
    return AccountService(users, DevTokenAuthenticator(), clock=clock)


@pytest.fixture
def lifecycle(issues, users, clock):
    return IssueLifecycle(issues, users, clock=clock)


@pytest.fixture
def citizen(accounts):
    _, user = accounts.signup("citizen@example.com", None, "secret123", Role.USER)
    return user


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def app():
    return create_app(start_scheduler=False)


@pytest_asyncio.fixture
async def client(app):
    """In-process httpx AsyncClient with rate limiting disabled."""
    limiter.enabled = False
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
            yield c


async def signup(client: httpx.AsyncClient, email: str = "citizen@example.com",
                 password: str = "citizen123", role: str = "User") -> dict:
    """Sign up and return Authorization headers plus the user id."""
    resp = await client.post("/auth/signup", json={
        "email": email, "password": password, "role": role})
    assert resp.status_code == 200, f"Signup failed for {email}: {resp.text}"
    data = resp.json()
    return {"headers": {"Authorization": f"Bearer {data['token']}"}, "user_id": data["user"]["id"]}


@pytest_asyncio.fixture
async def citizen_headers(client):
    return (await signup(client))["headers"]
