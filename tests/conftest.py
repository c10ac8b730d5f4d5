import pytest
from httpx import ASGITransport, AsyncClient

from upcrelay.app import create_app
from upcrelay.config import Settings


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    """Settings with fixed test credentials, ignoring any local .env file."""
    return Settings(
        _env_file=None,
        ebay_client_id="client-id",
        ebay_client_secret="client-secret",
        ebay_refresh_token="refresh-token",
    )


@pytest.fixture
async def app(settings: Settings):
    application = create_app(settings)
    yield application
    await application.state.http_client.aclose()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


class FakeClock:
    """Manually advanced stand-in for ``time.time``."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
