from __future__ import annotations

import httpx
import pytest
from starlette.applications import Starlette


@pytest.fixture
def anyio_backend() -> str:
    return 'asyncio'


@pytest.fixture
def client_for():
    """Build an in-process httpx client for a Starlette/FastAPI app."""

    def _client(app: Starlette) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url='http://test')

    return _client
