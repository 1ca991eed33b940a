"""编解码路由

GET  /api/projects/{project_id}/token: 导出分享令牌
GET  /api/projects/{project_id}/text: 导出规范文本（文件备份格式）
POST /api/decode: 从令牌或规范文本恢复项目（可选保存）
POST /api/describe: 令牌逐阶段诊断

解码失败返回 422 DECODE_FAILED（"无法恢复数据"），附带失败原因。
"""

from fastapi import APIRouter, Depends
from meldtask.codec import (
    DecodeFailureReason,
    TextFormParseError,
    decode_token,
    describe_token,
    dump_document,
    encode_document,
    load_document,
)
from meldtask.core.exceptions import ForestInvariantError, TaskOperationError
from meldtask.core.models import ProjectDocument
from pydantic import BaseModel, model_validator

from ..deps import get_project_service
from ..services.project_service import ProjectService
from .errors import error_response, operation_error
from .projects import project_response

router = APIRouter()

DECODE_FAILED_MESSAGE = "无法恢复数据"


class TokenResponse(BaseModel):
    project_id: str
    token: str


class TextResponse(BaseModel):
    project_id: str
    text: str


class DecodeRequest(BaseModel):
    """token 与 text 恰好提供一个"""

    token: str | None = None
    text: str | None = None
    save: bool = False

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "DecodeRequest":
        if (self.token is None) == (self.text is None):
            raise ValueError("token 与 text 必须恰好提供一个")
        return self


class DescribeRequest(BaseModel):
    token: str


def decode_source(token: str | None, text: str | None) -> tuple[ProjectDocument | None, dict]:
    """从令牌或规范文本还原文档；失败时返回 (None, 失败详情)"""
    if token is not None:
        result = decode_token(token)
        if not result.ok:
            return None, {
                "reason": result.failure.reason.value,
                "detail": result.failure.message,
            }
        return result.document, {}
    try:
        return load_document(text), {}
    except TextFormParseError as e:
        return None, {"reason": DecodeFailureReason.PARSE_FAILED.value, "detail": str(e)}


def decode_failed(failure: dict):
    return error_response(422, "DECODE_FAILED", DECODE_FAILED_MESSAGE, **failure)


@router.get("/api/projects/{project_id}/token", response_model=TokenResponse)
async def export_token(
    project_id: str,
    service: ProjectService = Depends(get_project_service),
):
    """导出当前项目的 URL 令牌"""
    try:
        document = await service.get_project(project_id)
    except TaskOperationError as e:
        return operation_error(e)
    return TokenResponse(project_id=project_id, token=encode_document(document))


@router.get("/api/projects/{project_id}/text", response_model=TextResponse)
async def export_text(
    project_id: str,
    service: ProjectService = Depends(get_project_service),
):
    """导出规范文本"""
    try:
        document = await service.get_project(project_id)
    except TaskOperationError as e:
        return operation_error(e)
    return TextResponse(project_id=project_id, text=dump_document(document))


@router.post("/api/decode")
async def decode(
    body: DecodeRequest,
    service: ProjectService = Depends(get_project_service),
):
    """还原项目；save=True 时写入存储（同 ID 项目被替换）"""
    document, failure = decode_source(body.token, body.text)
    if document is None:
        return decode_failed(failure)
    if body.save:
        try:
            document = await service.put_project(document)
        except ForestInvariantError as e:
            return error_response(422, "INVALID_FOREST", str(e))
    return project_response(document)


@router.post("/api/describe")
async def describe(body: DescribeRequest):
    """令牌逐阶段诊断"""
    return describe_token(body.token).model_dump(mode="json")
