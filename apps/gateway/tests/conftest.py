"""apps/gateway 测试配置 -- httpx AsyncClient + 临时 SQLite"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from meldtask.core.config import MeldTaskConfig
from meldtask.core.store import create_store_group


@pytest_asyncio.fixture
async def gateway_tmp_dir(tmp_path: Path) -> Path:
    """Gateway 临时数据目录"""
    db_dir = tmp_path / "sqlite"
    db_dir.mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest_asyncio.fixture
async def app(gateway_tmp_dir: Path):
    """创建测试用 FastAPI app 实例

    ASGITransport 不触发 lifespan，这里手动初始化 app.state。
    """
    db_path = str(gateway_tmp_dir / "sqlite" / "test.db")
    os.environ["MELDTASK_DB_PATH"] = db_path

    from meldtask.gateway.main import create_app
    from meldtask.gateway.services.history_hub import HistoryHub
    from meldtask.gateway.services.merge_hub import MergeSessionHub
    from meldtask.gateway.services.project_service import ProjectService

    application = create_app()
    config = MeldTaskConfig(history_limit=10, store_key="test")
    store_group = await create_store_group(db_path)
    application.state.store_group = store_group
    application.state.config = config
    application.state.project_service = ProjectService(
        store_group, config, HistoryHub(config.history_limit)
    )
    application.state.merge_hub = MergeSessionHub()

    yield application

    await store_group.conn.close()
    os.environ.pop("MELDTASK_DB_PATH", None)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
