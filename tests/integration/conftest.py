"""集成测试共享 fixture"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient


@pytest_asyncio.fixture
async def integration_app(tmp_path: Path):
    """集成测试用 FastAPI app（经由 lifespan 初始化）"""
    os.environ["MELDTASK_DB_PATH"] = str(tmp_path / "test.db")
    os.environ["MELDTASK_STORE_KEY"] = "integration"

    from meldtask.gateway.main import create_app

    app = create_app()
    async with app.router.lifespan_context(app):
        yield app

    os.environ.pop("MELDTASK_DB_PATH", None)
    os.environ.pop("MELDTASK_STORE_KEY", None)


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
