"""编辑意图 -- 表现层协作方调用的字段修改操作

每个操作接收当前 ProjectDocument，返回经过状态传播的新文档；
被拒绝的意图抛出 TaskOperationError 子类，文档保持不变。
"""

from collections.abc import Mapping
from typing import Any

import structlog

from .exceptions import (
    DuplicateTaskNameError,
    EmptyProjectNameError,
    EmptyTaskNameError,
    TaskNotFoundError,
)
from .forest import active_tasks, descendant_ids, sorted_siblings
from .ids import allocate_task_id
from .models.enums import TaskStatus
from .models.results import MoveResult
from .models.task import ProjectDocument, Task
from .reorder import move_task, move_to_root
from .status import cascade_parent_status, recalculate_status

log = structlog.get_logger()


def _require_live(document: ProjectDocument, task_id: str) -> Task:
    task = document.get_task(task_id)
    if task is None or task.is_deleted:
        raise TaskNotFoundError(task_id)
    return task


def _ensure_unique_name(
    document: ProjectDocument,
    name: str,
    parent_id: str | None,
    exclude_id: str | None = None,
) -> None:
    for task in active_tasks(document.tasks):
        if task.id != exclude_id and task.parent_id == parent_id and task.name == name:
            raise DuplicateTaskNameError(name, parent_id)


def _commit(document: ProjectDocument, tasks: list[Task], now: int) -> ProjectDocument:
    return document.with_tasks(recalculate_status(tasks, now), last_synced=now)


def create_project(
    project_id: str,
    project_name: str,
    now: int,
    attributes: dict[str, Any] | None = None,
) -> ProjectDocument:
    """创建空项目文档"""
    return ProjectDocument(
        id=project_id,
        project_name=project_name,
        tasks=[],
        last_synced=now,
        project_start_date=now,
        attributes=attributes,
    )


def rename_project(document: ProjectDocument, project_name: str, now: int) -> ProjectDocument:
    """修改项目名"""
    if not project_name.strip():
        raise EmptyProjectNameError()
    return document.model_copy(update={"project_name": project_name, "last_synced": now})


def add_task(
    document: ProjectDocument,
    name: str,
    now: int,
    parent_id: str | None = None,
    deadline: int | None = None,
) -> tuple[ProjectDocument, str]:
    """新增任务

    父任务不存在或已删除时挂到根；新任务排在兄弟末尾。

    Returns:
        (新文档, 新任务 ID)
    """
    if not name.strip():
        raise EmptyTaskNameError()
    if parent_id is not None:
        parent = document.get_task(parent_id)
        if parent is None or parent.is_deleted:
            parent_id = None
    _ensure_unique_name(document, name, parent_id)

    task_id = allocate_task_id(t.id for t in document.tasks)
    siblings = sorted_siblings(document.tasks, parent_id)
    next_order = max((t.order for t in siblings), default=0) + 1
    task = Task(
        id=task_id,
        name=name,
        status=TaskStatus.NOT_STARTED,
        parent_id=parent_id,
        deadline=deadline,
        order=next_order,
        last_updated=now,
    )
    log.debug("task_added", project_id=document.id, task_id=task_id, parent_id=parent_id)
    return _commit(document, [*document.tasks, task], now), task_id


def rename_task(document: ProjectDocument, task_id: str, name: str, now: int) -> ProjectDocument:
    """重命名任务（同层不可重名）"""
    if not name.strip():
        raise EmptyTaskNameError()
    target = _require_live(document, task_id)
    _ensure_unique_name(document, name, target.parent_id, exclude_id=task_id)
    tasks = [
        t.model_copy(update={"name": name, "last_updated": now}) if t.id == task_id else t
        for t in document.tasks
    ]
    return _commit(document, tasks, now)


def set_task_status(
    document: ProjectDocument,
    task_id: str,
    status: TaskStatus,
    now: int,
) -> ProjectDocument:
    """设置叶子任务状态

    拥有子任务的任务状态由子任务决定，直接写入会在状态传播中被重算；
    需要级联时使用 set_parent_status。
    """
    _require_live(document, task_id)
    tasks = [
        t.model_copy(update={"status": status, "last_updated": now}) if t.id == task_id else t
        for t in document.tasks
    ]
    return _commit(document, tasks, now)


def set_parent_status(
    document: ProjectDocument,
    task_id: str,
    status: TaskStatus,
    now: int,
) -> ProjectDocument:
    """设置父任务状态并级联到后代"""
    _require_live(document, task_id)
    tasks = cascade_parent_status(document.tasks, task_id, status, now)
    return document.with_tasks(tasks, last_synced=now)


def set_deadline(
    document: ProjectDocument,
    task_id: str,
    deadline: int | None,
    now: int,
) -> ProjectDocument:
    """设置或清除截止时间（写入绝对时间，清除旧版天数偏移）"""
    _require_live(document, task_id)
    tasks = [
        t.model_copy(
            update={"deadline": deadline, "deadline_offset": None, "last_updated": now}
        )
        if t.id == task_id
        else t
        for t in document.tasks
    ]
    return _commit(document, tasks, now)


def delete_subtree(document: ProjectDocument, task_id: str, now: int) -> ProjectDocument:
    """软删除任务及其全部后代（写入墓碑，ID 不再复用）"""
    _require_live(document, task_id)
    doomed = descendant_ids(document.tasks, task_id) | {task_id}
    tasks = [
        t.model_copy(update={"is_deleted": True, "last_updated": now})
        if t.id in doomed and not t.is_deleted
        else t
        for t in document.tasks
    ]
    log.info("subtree_deleted", project_id=document.id, task_id=task_id, count=len(doomed))
    return _commit(document, tasks, now)


def move(
    document: ProjectDocument,
    task_id: str,
    new_parent_id: str | None,
    now: int,
    index: int | None = None,
) -> tuple[ProjectDocument, MoveResult]:
    """移动任务；换父任务时新兄弟中不可有同名任务

    被拒绝的移动（自挂载、成环、目标不存在）返回原文档与带原因的 MoveResult。
    """
    target = document.get_task(task_id)
    if target is not None and not target.is_deleted and target.parent_id != new_parent_id:
        _ensure_unique_name(document, target.name, new_parent_id, exclude_id=task_id)
    result = move_task(document.tasks, task_id, new_parent_id, index, now=now)
    if not result.moved:
        return document, result
    return document.with_tasks(result.tasks, last_synced=now), result


def move_root(
    document: ProjectDocument,
    task_id: str,
    anchor_x: float,
    slot_centers: Mapping[str, float],
    now: int,
) -> tuple[ProjectDocument, MoveResult]:
    """把任务拖放到根层，插入位置由水平锚点决定"""
    target = document.get_task(task_id)
    if target is not None and not target.is_deleted and target.parent_id is not None:
        _ensure_unique_name(document, target.name, None, exclude_id=task_id)
    result = move_to_root(document.tasks, task_id, anchor_x, slot_centers, now=now)
    if not result.moved:
        return document, result
    return document.with_tasks(result.tasks, last_synced=now), result
