"""
Shared test fixtures.

Key fixtures:
- test_settings: Settings with a known signing key and a cheap bcrypt cost
- clock: A controllable clock; tests move time with `clock.advance(seconds)`
- codec: TokenCodec bound to the test key and clock
- make_token: Factory for raw JWTs with arbitrary claims (for forged/odd tokens)
- users / games: In-memory collections wrapped in the real store adapters
- app / client: The Starlette app wired to the fakes, and an httpx.AsyncClient
  sending requests to it in-memory (no network, no MongoDB)
"""

import datetime
import time

import httpx
import jwt
import pytest

from gamehub.config import Settings
from gamehub.passwords import PasswordHasher
from gamehub.server import create_app
from gamehub.store import CredentialStore, GameStore
from gamehub.tokens import TokenCodec
from tests.fakes import FakeCollection

TEST_SECRET = "test-signing-key-with-enough-bytes-for-hs256"
TEST_ALGORITHM = "HS256"


class FakeClock:
    """Starts at the real time so cookie expiries stay meaningful to httpx."""

    def __init__(self, now: float | None = None):
        self.now = time.time() if now is None else now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        signing_key=TEST_SECRET,
        jwt_algorithm=TEST_ALGORITHM,
        access_token_ttl_hours=1,
        refresh_token_ttl_hours=24,
        work_factor=4,
        public_dir=tmp_path / "no-public-dir",
        mode="prod",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def codec(clock) -> TokenCodec:
    return TokenCodec(TEST_SECRET, TEST_ALGORITHM, clock=clock)


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(work_factor=4)


@pytest.fixture
def user_collection() -> FakeCollection:
    return FakeCollection("users")


@pytest.fixture
def game_collection() -> FakeCollection:
    return FakeCollection("games")


@pytest.fixture
def users(user_collection) -> CredentialStore:
    return CredentialStore(user_collection)


@pytest.fixture
def games(game_collection) -> GameStore:
    return GameStore(game_collection)


@pytest.fixture
def make_token(clock):
    """
    Factory fixture to generate raw JWT tokens for testing.

    Unlike codec.issue(), this can build tokens the server would never
    produce: wrong key, missing claims, odd claim types.

    Usage in tests:
        def test_something(make_token):
            token = make_token(user_id="USR0001", username="alice", exp_seconds=-10)
    """

    def _make_token(
        user_id="USR0001",
        username="alice",
        secret: str = TEST_SECRET,
        algorithm: str = TEST_ALGORITHM,
        exp_seconds: float = 3600,
        extra_claims: dict | None = None,
        include_exp: bool = True,
    ) -> str:
        now = datetime.datetime.fromtimestamp(clock(), tz=datetime.timezone.utc)
        payload: dict = {"iat": now}
        if user_id is not None:
            payload["id"] = user_id
        if username is not None:
            payload["username"] = username
        if include_exp:
            payload["exp"] = now + datetime.timedelta(seconds=exp_seconds)
        if extra_claims:
            payload.update(extra_claims)
        return jwt.encode(payload, secret, algorithm=algorithm)

    return _make_token


@pytest.fixture
def make_app(test_settings, users, games, hasher, clock):
    """Build an app with overridden settings, e.g. make_app(mode="dev")."""

    def _make_app(**overrides):
        config = test_settings.model_copy(update=overrides)
        return create_app(config, users=users, games=games, hasher=hasher, clock=clock)

    return _make_app


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
async def make_client():
    """Factory for clients bound to a specific app (dev mode, broken stores...)."""
    clients = []

    def _make_client(app, raise_app_exceptions: bool = True) -> httpx.AsyncClient:
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=raise_app_exceptions)
        client = httpx.AsyncClient(transport=transport, base_url="http://testserver")
        clients.append(client)
        return client

    yield _make_client

    for client in clients:
        await client.aclose()
