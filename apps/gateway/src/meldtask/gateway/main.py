"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + 服务实例初始化 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from meldtask.core.config import get_db_path, load_config
from meldtask.core.store import create_store_group

from .middleware.logging_config import setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import codec, health, merge, projects, tasks
from .services.history_hub import HistoryHub
from .services.merge_hub import MergeSessionHub
from .services.project_service import ProjectService

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 与服务，关闭时清理连接"""
    config = load_config()
    db_path = get_db_path()
    store_group = await create_store_group(db_path)
    app.state.store_group = store_group
    app.state.config = config

    app.state.project_service = ProjectService(
        store_group,
        config,
        HistoryHub(config.history_limit),
    )
    app.state.merge_hub = MergeSessionHub()
    log.info("gateway_started", db_path=db_path, store_key=config.store_key)

    yield

    # 关闭：清理数据库连接
    if hasattr(app.state, "store_group") and app.state.store_group:
        await app.state.store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="meldtask Gateway",
        version="0.1.0",
        description="任务森林编辑、分享令牌编解码与快照合并 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()

    # 注册路由
    app.include_router(projects.router, tags=["projects"])
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(codec.router, tags=["codec"])
    app.include_router(merge.router, tags=["merge"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
