"""
Shared pytest fixtures.

Every test gets its own SQLite database and upload directory under
``tmp_path``; the application runs its full lifespan (tables, bootstrap
admin, SLA config, notification workers) around each test.
"""

from typing import AsyncGenerator, Awaitable, Callable, Optional, Tuple

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from helpdesk.config import Settings
from helpdesk.main import create_app
from tests.factories import ADMIN_PASSWORD, ADMIN_USERNAME, user_payload


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        log_level="WARNING",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'helpdesk.db'}",
        session_secret="test-session-secret",
        bcrypt_rounds=4,
        bootstrap_admin_username=ADMIN_USERNAME,
        bootstrap_admin_password=ADMIN_PASSWORD,
        upload_dir=tmp_path / "uploads",
        sla_config_path=tmp_path / "sla_config.yaml",
        sla_monitor_enabled=False,
        notification_retry_base_seconds=0,
        notification_shutdown_timeout=1.0,
    )


@pytest_asyncio.fixture
async def app(settings: Settings) -> AsyncGenerator[FastAPI, None]:
    application = create_app(settings)
    async with application.router.lifespan_context(application):
        yield application


@pytest_asyncio.fixture
async def make_client(app: FastAPI):
    """Factory for HTTP clients, optionally logged in."""
    clients = []

    async def _make(username: Optional[str] = None, password: Optional[str] = None) -> AsyncClient:
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(client)
        if username is not None:
            response = await client.post(
                "/api/auth/login", json={"username": username, "password": password}
            )
            assert response.status_code == 200, response.text
        return client

    yield _make

    for client in clients:
        await client.aclose()


@pytest_asyncio.fixture
async def client(make_client) -> AsyncClient:
    """Anonymous client."""
    return await make_client()


@pytest_asyncio.fixture
async def admin_client(make_client) -> AsyncClient:
    return await make_client(ADMIN_USERNAME, ADMIN_PASSWORD)


UserWithClient = Tuple[dict, AsyncClient]


@pytest_asyncio.fixture
async def login_as(admin_client, make_client) -> Callable[..., Awaitable[UserWithClient]]:
    """Create a user with the given role and return it with a logged-in client."""

    async def _login_as(role: str = "employee", **overrides) -> UserWithClient:
        payload = user_payload(role=role, **overrides)
        response = await admin_client.post("/api/users", json=payload)
        assert response.status_code == 201, response.text
        user = response.json()
        user_client = await make_client(user["username"], payload["password"])
        return user, user_client

    return _login_as


@pytest_asyncio.fixture
async def employee(login_as) -> UserWithClient:
    return await login_as("employee", department="Finance")


@pytest_asyncio.fixture
async def agent(login_as) -> UserWithClient:
    return await login_as("agent", department="IT")


@pytest_asyncio.fixture
async def manager(login_as) -> UserWithClient:
    return await login_as("manager")
