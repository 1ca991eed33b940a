"""TraceMiddleware -- 为项目操作绑定 project_id

从 /api/projects/{project_id}/... 路径中提取项目 ID，
贯穿该请求内的全部日志。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


def extract_project_id(path: str) -> str | None:
    """从路径中提取项目 ID（不是项目路由时返回 None）"""
    parts = [p for p in path.split("/") if p]
    # ["api", "projects", "{project_id}", ...]
    if len(parts) >= 3 and parts[0] == "api" and parts[1] == "projects":
        return parts[2]
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """项目级追踪中间件 -- 为项目操作绑定 project_id"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        project_id = extract_project_id(request.url.path)
        if project_id:
            structlog.contextvars.bind_contextvars(project_id=project_id)

        return await call_next(request)
