import asyncio
from uuid import uuid4

import httpx
import pytest
from fastapi.testclient import TestClient

from fundbridge.main import app
from fundbridge.models.user import UserProfile, UserRole
from fundbridge.services.funding.users import InMemoryUserDirectory, get_user_directory


class _SyncASGIClient:
    """Minimal synchronous wrapper around httpx.AsyncClient for ASGI apps."""

    def __init__(self, app):
        transport = httpx.ASGITransport(app=app)
        self._client = httpx.AsyncClient(transport=transport, base_url="http://testserver")

    def request(self, method: str, url: str, **kwargs):
        return asyncio.run(self._client.request(method, url, **kwargs))

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs):
        return self.request("POST", url, **kwargs)

    def put(self, url: str, **kwargs):
        return self.request("PUT", url, **kwargs)

    def delete(self, url: str, **kwargs):
        return self.request("DELETE", url, **kwargs)

    def close(self) -> None:
        asyncio.run(self._client.aclose())


@pytest.fixture
def client():
    """Create test client compatible with older/newer httpx releases."""
    try:
        test_client = TestClient(app)
        yield test_client
    except TypeError:
        fallback_client = _SyncASGIClient(app)
        try:
            yield fallback_client
        finally:
            fallback_client.close()


@pytest.fixture
def startup_user() -> UserProfile:
    return UserProfile(
        id=uuid4(), role=UserRole.STARTUP, name="Acme Payments", domain="Fintech payments"
    )


@pytest.fixture
def investor_user() -> UserProfile:
    return UserProfile(id=uuid4(), role=UserRole.INVESTOR, name="Seed Capital")


@pytest.fixture
def other_investor() -> UserProfile:
    return UserProfile(id=uuid4(), role=UserRole.INVESTOR, name="Growth Partners")


@pytest.fixture
def directory(startup_user, investor_user, other_investor) -> InMemoryUserDirectory:
    """User directory wired into the app for the duration of a test."""
    users = InMemoryUserDirectory([startup_user, investor_user, other_investor])
    app.dependency_overrides[get_user_directory] = lambda: users
    try:
        yield users
    finally:
        app.dependency_overrides.pop(get_user_directory, None)
