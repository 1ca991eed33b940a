"""项目路由

GET    /api/projects: 项目列表（摘要）
POST   /api/projects: 创建空项目（分配项目 ID）
GET    /api/projects/{project_id}: 项目详情
PATCH  /api/projects/{project_id}: 修改项目名
DELETE /api/projects/{project_id}: 删除项目
POST   /api/projects/{project_id}/undo | /redo: 撤销/重做
"""

from typing import Any

from fastapi import APIRouter, Depends
from meldtask.core.exceptions import TaskOperationError
from meldtask.core.forest import active_tasks, project_progress
from meldtask.core.models import ProjectDocument, now_ms
from meldtask.core.operations import rename_project
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse, Response

from ..deps import get_project_service
from ..services.project_service import ProjectService
from .errors import operation_error

router = APIRouter()


class ProjectSummary(BaseModel):
    """项目摘要（列表项）"""

    id: str
    project_name: str
    task_count: int
    progress: int
    last_synced: int


class ProjectListResponse(BaseModel):
    """项目列表响应"""

    projects: list[ProjectSummary]


class ProjectResponse(BaseModel):
    """项目详情响应"""

    project: ProjectDocument
    progress: int = Field(description="叶子任务加权进度（百分比）")


class CreateProjectRequest(BaseModel):
    project_name: str | None = None


class RenameProjectRequest(BaseModel):
    project_name: str


def project_response(
    document: ProjectDocument,
    status_code: int = 200,
    **extra: Any,
) -> JSONResponse:
    """项目详情 JSON 响应，extra 作为附加字段"""
    content = ProjectResponse(
        project=document,
        progress=project_progress(document.tasks),
    ).model_dump(mode="json")
    return JSONResponse(status_code=status_code, content={**content, **extra})


@router.get("/api/projects", response_model=ProjectListResponse)
async def list_projects(service: ProjectService = Depends(get_project_service)):
    """查询存储键下的全部项目"""
    documents = await service.list_projects()
    return ProjectListResponse(
        projects=[
            ProjectSummary(
                id=d.id,
                project_name=d.project_name,
                task_count=len(active_tasks(d.tasks)),
                progress=project_progress(d.tasks),
                last_synced=d.last_synced,
            )
            for d in documents
        ]
    )


@router.post("/api/projects", status_code=201)
async def create_project(
    body: CreateProjectRequest,
    service: ProjectService = Depends(get_project_service),
):
    """创建空项目"""
    document = await service.create_project(body.project_name)
    return project_response(document, status_code=201)


@router.get("/api/projects/{project_id}")
async def get_project(
    project_id: str,
    service: ProjectService = Depends(get_project_service),
):
    """查询项目详情"""
    try:
        document = await service.get_project(project_id)
    except TaskOperationError as e:
        return operation_error(e)
    return project_response(document)


@router.patch("/api/projects/{project_id}")
async def patch_project(
    project_id: str,
    body: RenameProjectRequest,
    service: ProjectService = Depends(get_project_service),
):
    """修改项目名"""
    try:
        document = await service.update(
            project_id,
            lambda doc: rename_project(doc, body.project_name, now_ms()),
        )
    except TaskOperationError as e:
        return operation_error(e)
    return project_response(document)


@router.delete("/api/projects/{project_id}", status_code=204)
async def delete_project(
    project_id: str,
    service: ProjectService = Depends(get_project_service),
):
    """删除项目"""
    try:
        await service.delete_project(project_id)
    except TaskOperationError as e:
        return operation_error(e)
    return Response(status_code=204)


@router.post("/api/projects/{project_id}/undo")
async def undo(
    project_id: str,
    service: ProjectService = Depends(get_project_service),
):
    """撤销上一次修改（没有历史时返回当前状态）"""
    try:
        document = await service.undo(project_id)
    except TaskOperationError as e:
        return operation_error(e)
    return project_response(document)


@router.post("/api/projects/{project_id}/redo")
async def redo(
    project_id: str,
    service: ProjectService = Depends(get_project_service),
):
    """重做（没有可重做状态时返回当前状态）"""
    try:
        document = await service.redo(project_id)
    except TaskOperationError as e:
        return operation_error(e)
    return project_response(document)
