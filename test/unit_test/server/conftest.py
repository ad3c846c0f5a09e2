from typing import AsyncGenerator, Callable, Optional
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from githarbor.core.database.entities import User
from githarbor.server.core.constant import PRIVATE_TOKEN_HEADER


def _sign_in(client: AsyncClient, user: Optional[User]) -> None:
    """Send the user's private token with every following request; None signs out."""
    if user is None:
        client.headers.pop(PRIVATE_TOKEN_HEADER, None)
    else:
        client.headers[PRIVATE_TOKEN_HEADER] = user.authentication_token or ""


@pytest_asyncio.fixture(name="client")
async def client_fixture(session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client with mocked lifespan and overridden dependencies."""
    from githarbor.core.database import get_session
    from githarbor.server.main import app

    async def get_session_override() -> AsyncGenerator[AsyncSession, None]:
        yield session

    app.dependency_overrides[get_session] = get_session_override

    # Mock the lifespan to prevent database initialization during tests
    async def mock_lifespan(app):
        yield

    with patch("githarbor.server.main.lifespan", mock_lifespan):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
            yield client

    app.dependency_overrides.clear()


@pytest.fixture
def sign_in(client: AsyncClient) -> Callable[[Optional[User]], None]:
    """``sign_in(user)`` authenticates the following requests of ``client``."""
    return lambda user: _sign_in(client, user)
