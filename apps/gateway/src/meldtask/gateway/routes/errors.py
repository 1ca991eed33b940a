"""错误响应 -- 统一的 {"error": {"code", "message"}} 结构"""

from typing import Any

from meldtask.core.exceptions import TaskOperationError
from starlette.responses import JSONResponse

# 业务错误码 -> HTTP 状态码（未列出的为 400）
_STATUS_BY_CODE = {
    "PROJECT_NOT_FOUND": 404,
    "TASK_NOT_FOUND": 404,
    "MERGE_ROW_NOT_FOUND": 404,
    "MERGE_SESSION_NOT_FOUND": 404,
    "DUPLICATE_TASK_NAME": 409,
    "PROJECT_STALE": 409,
    "DUPLICATE_TASK_ID": 422,
}


def error_response(status_code: int, code: str, message: str, **extra: Any) -> JSONResponse:
    """构造错误响应，extra 合并进 error 对象"""
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, **extra}},
    )


def operation_error(e: TaskOperationError) -> JSONResponse:
    """被拒绝的编辑意图 -> 错误响应"""
    return error_response(_STATUS_BY_CODE.get(e.code, 400), e.code, str(e))
