import asyncio
import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from memberauth.app import create_app
from memberauth.auth.passwords import Argon2Hasher
from memberauth.auth.session_store import MemorySessionStore
from memberauth.auth.users import ROLE_ADMIN, YamlUserStore
from memberauth.config import Settings
from memberauth.context import AppContext

# Cheap argon2 parameters; production uses the library defaults.
FAST_HASH = {"time_cost": 1, "memory_cost": 1024, "parallelism": 1}


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(secret_key="test-secret", users_path=tmp_path / "data" / "users.yml")


@pytest.fixture()
def ctx(settings: Settings, clock: FakeClock) -> AppContext:
    return AppContext(
        settings=settings,
        users=YamlUserStore(settings.users_path),
        sessions=MemorySessionStore(clock),
        hasher=Argon2Hasher(**FAST_HASH),
        clock=clock,
    )


@pytest.fixture()
def client(ctx: AppContext) -> TestClient:
    return TestClient(create_app(ctx))


def signup(client: TestClient, email="a@x.com", name="Ann", password="pw123"):
    return client.post(
        "/submitUser",
        data={"email": email, "name": name, "password": password},
        follow_redirects=False,
    )


def login(client: TestClient, email="a@x.com", password="pw123"):
    return client.post("/loggingin", data={"email": email, "password": password}, follow_redirects=False)


@pytest.fixture()
def admin_user(ctx: AppContext):
    """An admin seeded straight into the store (password 'rootpw')."""

    async def _seed():
        return await ctx.users.insert(
            "root@x.com", "Root", await ctx.hasher.hash("rootpw"), role=ROLE_ADMIN
        )

    return asyncio.run(_seed())
