"""合并路由

POST   /api/projects/{project_id}/merge: 以令牌/文本中的远端快照开始合并
GET    /api/projects/{project_id}/merge: 当前逐行对比视图
PUT    /api/projects/{project_id}/merge/priority: 切换全局优先级
POST   /api/projects/{project_id}/merge/reject-remote: 不合并（全部保留本地）
PUT    /api/projects/{project_id}/merge/rows/{row_id}: 覆盖单行操作 / 保留双方
PUT    /api/projects/{project_id}/merge/rows/{row_id}/rename: 提交时改名
PUT    /api/projects/{project_id}/merge/project-name: 选择项目名来源
POST   /api/projects/{project_id}/merge/commit: 提交
DELETE /api/projects/{project_id}/merge: 放弃合并

重名冲突时 commit 返回 409 DUPLICATE_TASK_NAME 与冲突分组，不写入任何结果；
开始合并后项目又被编辑时 commit 返回 409 MERGE_STALE。
"""

import structlog
from fastapi import APIRouter, Depends
from meldtask.core.exceptions import TaskOperationError
from meldtask.core.models import now_ms
from meldtask.merge import (
    DuplicateName,
    MergePriority,
    MergeRow,
    MergeSession,
    MergeStatus,
    ResolveAction,
)
from pydantic import BaseModel, model_validator
from starlette.responses import JSONResponse, Response

from ..deps import get_merge_hub, get_project_service
from ..services.merge_hub import MergeSessionHub
from ..services.project_service import ProjectService, StaleProjectError
from .codec import decode_failed, decode_source
from .errors import error_response, operation_error
from .projects import project_response

router = APIRouter()
log = structlog.get_logger()


class BeginMergeRequest(BaseModel):
    """远端快照来源：token 与 text 恰好提供一个"""

    token: str | None = None
    text: str | None = None
    priority: MergePriority = MergePriority.LOCAL

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "BeginMergeRequest":
        if (self.token is None) == (self.text is None):
            raise ValueError("token 与 text 必须恰好提供一个")
        return self


class PriorityRequest(BaseModel):
    priority: MergePriority


class ResolveRowRequest(BaseModel):
    action: ResolveAction | None = None
    keep_both: bool | None = None


class RenameRowRequest(BaseModel):
    name: str | None = None


class ProjectNameRequest(BaseModel):
    use_remote: bool


class MergeView(BaseModel):
    """合并会话视图"""

    project_id: str
    priority: MergePriority
    project_name: str
    local_project_name: str
    remote_project_name: str
    rows: list[MergeRow]
    visible_row_ids: list[str]
    is_noop: bool
    conflicts: list[DuplicateName]


def merge_view(session: MergeSession, status_code: int = 200) -> JSONResponse:
    view = MergeView(
        project_id=session.local.id,
        priority=session.priority,
        project_name=session.project_name,
        local_project_name=session.local.project_name,
        remote_project_name=session.remote.project_name,
        rows=session.rows,
        visible_row_ids=[row.id for row in session.visible_rows],
        is_noop=session.is_noop,
        conflicts=session.duplicate_conflicts(now_ms()),
    )
    return JSONResponse(status_code=status_code, content=view.model_dump(mode="json"))


def stale_merge(project_id: str) -> JSONResponse:
    log.info("merge_stale", project_id=project_id)
    return error_response(
        409,
        "MERGE_STALE",
        "合并开始后项目已被修改，请重新开始合并",
    )


@router.post("/api/projects/{project_id}/merge", status_code=201)
async def begin_merge(
    project_id: str,
    body: BeginMergeRequest,
    service: ProjectService = Depends(get_project_service),
    hub: MergeSessionHub = Depends(get_merge_hub),
):
    """开始合并：本地为存储中的项目，远端来自令牌或文本"""
    remote, failure = decode_source(body.token, body.text)
    if remote is None:
        return decode_failed(failure)
    try:
        local = await service.get_project(project_id)
        session = hub.begin(local, remote, body.priority)
    except TaskOperationError as e:
        return operation_error(e)
    return merge_view(session, status_code=201)


@router.get("/api/projects/{project_id}/merge")
async def get_merge(
    project_id: str,
    hub: MergeSessionHub = Depends(get_merge_hub),
):
    """查询合并视图"""
    try:
        session = hub.get(project_id)
    except TaskOperationError as e:
        return operation_error(e)
    return merge_view(session)


@router.put("/api/projects/{project_id}/merge/priority")
async def set_priority(
    project_id: str,
    body: PriorityRequest,
    hub: MergeSessionHub = Depends(get_merge_hub),
):
    """切换全局优先级"""
    try:
        session = hub.get(project_id)
    except TaskOperationError as e:
        return operation_error(e)
    session.set_priority(body.priority)
    return merge_view(session)


@router.post("/api/projects/{project_id}/merge/reject-remote")
async def reject_remote(
    project_id: str,
    hub: MergeSessionHub = Depends(get_merge_hub),
):
    """全部保留本地，忽略远端改动"""
    try:
        session = hub.get(project_id)
    except TaskOperationError as e:
        return operation_error(e)
    session.reject_remote()
    return merge_view(session)


@router.put("/api/projects/{project_id}/merge/rows/{row_id}")
async def resolve_row(
    project_id: str,
    row_id: str,
    body: ResolveRowRequest,
    hub: MergeSessionHub = Depends(get_merge_hub),
):
    """覆盖单行操作；keep_both 需在 action 之后应用"""
    try:
        session = hub.get(project_id)
        if body.action is not None:
            session.resolve_row(row_id, body.action)
        if body.keep_both is not None:
            session.keep_both(row_id, body.keep_both)
    except TaskOperationError as e:
        return operation_error(e)
    return merge_view(session)


@router.put("/api/projects/{project_id}/merge/rows/{row_id}/rename")
async def rename_row(
    project_id: str,
    row_id: str,
    body: RenameRowRequest,
    hub: MergeSessionHub = Depends(get_merge_hub),
):
    """设置提交时的新名称（name 为 null 时取消）"""
    try:
        session = hub.get(project_id)
        session.resolve_rename(row_id, body.name)
    except TaskOperationError as e:
        return operation_error(e)
    return merge_view(session)


@router.put("/api/projects/{project_id}/merge/project-name")
async def choose_project_name(
    project_id: str,
    body: ProjectNameRequest,
    hub: MergeSessionHub = Depends(get_merge_hub),
):
    """选择采用本地还是远端的项目名"""
    try:
        session = hub.get(project_id)
    except TaskOperationError as e:
        return operation_error(e)
    session.use_remote_project_name(body.use_remote)
    return merge_view(session)


@router.post("/api/projects/{project_id}/merge/commit")
async def commit_merge(
    project_id: str,
    service: ProjectService = Depends(get_project_service),
    hub: MergeSessionHub = Depends(get_merge_hub),
):
    """提交合并

    会话开始后项目又被编辑过时返回 409 MERGE_STALE 并结束会话，需基于新版本重新开始。
    """
    try:
        session = hub.get(project_id)
        current = await service.get_project(project_id)
    except TaskOperationError as e:
        return operation_error(e)
    if current != session.local:
        hub.close(project_id)
        return stale_merge(project_id)

    outcome = session.commit(now_ms())
    if outcome.status == MergeStatus.CONFLICT:
        return error_response(
            409,
            "DUPLICATE_TASK_NAME",
            "同一层级下存在同名任务，请改名或删除其中一方后再提交",
            conflicts=[c.model_dump(mode="json") for c in outcome.conflicts],
        )

    hub.close(project_id)
    document = outcome.document
    if outcome.status == MergeStatus.MERGED:
        try:
            document = await service.replace_if_unchanged(session.local, document)
        except StaleProjectError:
            return stale_merge(project_id)
        except TaskOperationError as e:
            return operation_error(e)
    return project_response(
        document,
        status=outcome.status.value,
        resurrected=outcome.resurrected,
    )


@router.delete("/api/projects/{project_id}/merge", status_code=204)
async def cancel_merge(
    project_id: str,
    hub: MergeSessionHub = Depends(get_merge_hub),
):
    """放弃合并"""
    hub.close(project_id)
    return Response(status_code=204)
