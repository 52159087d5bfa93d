"""
API test fixtures.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from raporpaud.main import create_app
from raporpaud.sync import SyncEngine


@pytest.fixture
async def client(engine: SyncEngine) -> AsyncClient:
    """Test client for an app wired to the online test engine."""
    app = create_app(engine=engine)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def admin_client(client: AsyncClient, school) -> AsyncClient:
    """Client with the admin logged in over the seeded school project."""
    response = await client.post(
        "/api/v1/session/login", json={"username": "admin", "password": "admin"}
    )
    assert response.status_code == 200
    return client
