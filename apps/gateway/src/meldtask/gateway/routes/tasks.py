"""任务编辑路由 -- 表现层的编辑意图

POST   /api/projects/{project_id}/tasks: 新增任务
PATCH  /api/projects/{project_id}/tasks/{task_id}: 重命名
PUT    /api/projects/{project_id}/tasks/{task_id}/status: 设置叶子状态
PUT    /api/projects/{project_id}/tasks/{task_id}/parent-status: 设置父任务状态并级联
PUT    /api/projects/{project_id}/tasks/{task_id}/deadline: 设置/清除截止时间
POST   /api/projects/{project_id}/tasks/{task_id}/move: 移动（可换父任务）
POST   /api/projects/{project_id}/tasks/{task_id}/move-to-root: 拖放到根层
DELETE /api/projects/{project_id}/tasks/{task_id}: 删除子树

移动被拒绝（自挂载、成环、目标不存在）返回 409 MOVE_REJECTED。
"""

from fastapi import APIRouter, Depends
from meldtask.core import operations
from meldtask.core.exceptions import TaskOperationError
from meldtask.core.models import MoveResult, ProjectDocument, TaskStatus, now_ms
from pydantic import BaseModel, Field

from ..deps import get_project_service
from ..services.project_service import ProjectService
from .errors import error_response, operation_error
from .projects import project_response

router = APIRouter()


class AddTaskRequest(BaseModel):
    name: str
    parent_id: str | None = None
    deadline: int | None = Field(default=None, description="截止时间（epoch 毫秒）")


class RenameTaskRequest(BaseModel):
    name: str


class StatusRequest(BaseModel):
    status: TaskStatus


class DeadlineRequest(BaseModel):
    deadline: int | None = None


class MoveRequest(BaseModel):
    new_parent_id: str | None = None
    index: int | None = Field(default=None, description="在新兄弟列表中的位置，省略则追加")


class MoveToRootRequest(BaseModel):
    anchor_x: float
    slot_centers: dict[str, float] = Field(
        default_factory=dict,
        description="根任务 ID -> 屏幕水平中心",
    )


@router.post("/api/projects/{project_id}/tasks", status_code=201)
async def add_task(
    project_id: str,
    body: AddTaskRequest,
    service: ProjectService = Depends(get_project_service),
):
    """新增任务，返回新任务 ID 与项目"""
    created: dict[str, str] = {}

    def change(doc: ProjectDocument) -> ProjectDocument:
        new_doc, task_id = operations.add_task(
            doc, body.name, now_ms(), parent_id=body.parent_id, deadline=body.deadline
        )
        created["task_id"] = task_id
        return new_doc

    try:
        document = await service.update(project_id, change)
    except TaskOperationError as e:
        return operation_error(e)
    return project_response(document, status_code=201, task_id=created["task_id"])


@router.patch("/api/projects/{project_id}/tasks/{task_id}")
async def rename_task(
    project_id: str,
    task_id: str,
    body: RenameTaskRequest,
    service: ProjectService = Depends(get_project_service),
):
    """重命名任务"""
    try:
        document = await service.update(
            project_id,
            lambda doc: operations.rename_task(doc, task_id, body.name, now_ms()),
        )
    except TaskOperationError as e:
        return operation_error(e)
    return project_response(document)


@router.put("/api/projects/{project_id}/tasks/{task_id}/status")
async def set_status(
    project_id: str,
    task_id: str,
    body: StatusRequest,
    service: ProjectService = Depends(get_project_service),
):
    """设置任务状态（父任务状态由子任务重算）"""
    try:
        document = await service.update(
            project_id,
            lambda doc: operations.set_task_status(doc, task_id, body.status, now_ms()),
        )
    except TaskOperationError as e:
        return operation_error(e)
    return project_response(document)


@router.put("/api/projects/{project_id}/tasks/{task_id}/parent-status")
async def set_parent_status(
    project_id: str,
    task_id: str,
    body: StatusRequest,
    service: ProjectService = Depends(get_project_service),
):
    """设置父任务状态并级联到后代"""
    try:
        document = await service.update(
            project_id,
            lambda doc: operations.set_parent_status(doc, task_id, body.status, now_ms()),
        )
    except TaskOperationError as e:
        return operation_error(e)
    return project_response(document)


@router.put("/api/projects/{project_id}/tasks/{task_id}/deadline")
async def set_deadline(
    project_id: str,
    task_id: str,
    body: DeadlineRequest,
    service: ProjectService = Depends(get_project_service),
):
    """设置或清除截止时间"""
    try:
        document = await service.update(
            project_id,
            lambda doc: operations.set_deadline(doc, task_id, body.deadline, now_ms()),
        )
    except TaskOperationError as e:
        return operation_error(e)
    return project_response(document)


async def _apply_move(service: ProjectService, project_id: str, mover):
    outcome: dict[str, MoveResult] = {}

    def change(doc: ProjectDocument) -> ProjectDocument:
        new_doc, result = mover(doc)
        outcome["result"] = result
        return new_doc

    try:
        document = await service.update(project_id, change)
    except TaskOperationError as e:
        return operation_error(e)
    result = outcome["result"]
    if not result.moved:
        return error_response(
            409,
            "MOVE_REJECTED",
            f"移动被拒绝: {result.rejection.value}",
            reason=result.rejection.value,
        )
    return project_response(document)


@router.post("/api/projects/{project_id}/tasks/{task_id}/move")
async def move_task(
    project_id: str,
    task_id: str,
    body: MoveRequest,
    service: ProjectService = Depends(get_project_service),
):
    """移动任务到新父任务下的指定位置"""
    return await _apply_move(
        service,
        project_id,
        lambda doc: operations.move(doc, task_id, body.new_parent_id, now_ms(), index=body.index),
    )


@router.post("/api/projects/{project_id}/tasks/{task_id}/move-to-root")
async def move_to_root(
    project_id: str,
    task_id: str,
    body: MoveToRootRequest,
    service: ProjectService = Depends(get_project_service),
):
    """拖放到根层，插入位置由水平锚点与各根槽位中心决定"""
    return await _apply_move(
        service,
        project_id,
        lambda doc: operations.move_root(doc, task_id, body.anchor_x, body.slot_centers, now_ms()),
    )


@router.delete("/api/projects/{project_id}/tasks/{task_id}")
async def delete_subtree(
    project_id: str,
    task_id: str,
    service: ProjectService = Depends(get_project_service),
):
    """删除任务及其全部后代（保留墓碑）"""
    try:
        document = await service.update(
            project_id,
            lambda doc: operations.delete_subtree(doc, task_id, now_ms()),
        )
    except TaskOperationError as e:
        return operation_error(e)
    return project_response(document)
