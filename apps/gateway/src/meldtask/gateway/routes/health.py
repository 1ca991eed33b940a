"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，包含 SQLite 连通性、编解码自检、磁盘空间。
"""

import shutil

import structlog
from fastapi import APIRouter, Request
from meldtask.codec import DEFAULT_REGISTRY, decode_token, encode_document
from meldtask.core.models import ProjectDocument, Task
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()

# 编解码自检样本：覆盖日文、拉丁字符与结构字符转义
_PROBE_DOCUMENT = ProjectDocument(
    id="a",
    project_name="自検テスト",
    tasks=[
        Task(id="1", name="確認, [済]", last_updated=1),
        Task(id="2", name="café", parent_id="1", order=1, last_updated=1),
    ],
)


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 验证核心依赖可用性

    检查项：
    1. sqlite: 数据库连通性
    2. codec: 当前版本映射组可用且样本往返一致
    3. disk_space_mb: 磁盘剩余空间
    """
    checks = {}
    all_ok = True

    # 1. SQLite 连通性检查
    try:
        store_group = request.app.state.store_group
        cursor = await store_group.conn.execute("SELECT 1")
        await cursor.fetchone()
        checks["sqlite"] = "ok"
    except Exception as e:
        log.warning("readiness_sqlite_failed", error=str(e))
        checks["sqlite"] = f"error: {str(e)}"
        all_ok = False

    # 2. 编解码自检
    result = decode_token(encode_document(_PROBE_DOCUMENT))
    if result.ok and result.document == _PROBE_DOCUMENT:
        checks["codec"] = "ok"
    else:
        checks["codec"] = "error: round trip mismatch"
        all_ok = False
    checks["codec_versions"] = DEFAULT_REGISTRY.versions

    # 3. 磁盘空间检查
    try:
        disk_usage = shutil.disk_usage("/")
        checks["disk_space_mb"] = disk_usage.free // (1024 * 1024)
    except OSError:
        checks["disk_space_mb"] = 0
        all_ok = False

    status_code = 200 if all_ok else 503
    status_text = "ready" if all_ok else "not_ready"

    return JSONResponse(
        status_code=status_code,
        content={
            "status": status_text,
            "checks": checks,
        },
    )
