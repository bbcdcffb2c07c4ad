"""Shared fixtures for backend tests: in-memory SQLite and a fake identity provider."""

from collections.abc import Callable, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from slowdown_backend.app import create_app
from slowdown_backend.config import Settings
from slowdown_backend.database import Base, build_engine, build_session_factory
from slowdown_backend.security import Identity
from slowdown_shared.errors import AuthenticationFailed

ADMIN_EMAIL = "admin@example.com"


class FakeVerifier:
    """Accepts tokens of the form `valid:<email>`."""

    def __call__(self, id_token: str) -> Identity:
        if not id_token.startswith("valid:"):
            raise AuthenticationFailed("Invalid Google token")
        email = id_token.removeprefix("valid:")
        return Identity(uid=f"uid-{email}", email=email, name=email.split("@")[0].title())


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite://",
        SECRET_KEY="test-secret",
        ADMIN_EMAILS=[ADMIN_EMAIL],
        TIMEZONE_OFFSET_HOURS=7,
    )


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    return create_app(settings, identity_verifier=FakeVerifier())


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(settings: Settings) -> Iterator[Session]:
    engine = build_engine(settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def sign_in(client: TestClient) -> Callable[[str], dict]:
    """Sign in by email; returns {"headers", "user"}."""

    def _sign_in(email: str) -> dict:
        resp = client.post("/auth/google", json={"idToken": f"valid:{email}"})
        assert resp.status_code == 200, resp.text
        body = resp.json()
        return {
            "headers": {"Authorization": f"Bearer {body['token']}"},
            "user": body["user"],
        }

    return _sign_in


@pytest.fixture
def admin(sign_in: Callable[[str], dict]) -> dict:
    return sign_in(ADMIN_EMAIL)


@pytest.fixture
def alice(sign_in: Callable[[str], dict]) -> dict:
    return sign_in("alice@example.com")
