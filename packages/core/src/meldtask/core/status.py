"""父任务状态传播

recalculate_status 把每个拥有未删除子任务的任务的状态，
从其直接子任务重新推导，反复执行直到不动点。
叶子任务保留显式设置的状态。
"""

from collections.abc import Iterable

import structlog

from .exceptions import StatusPropagationError
from .forest import descendant_ids
from .models.enums import CASCADE_PROTECTED_STATES, TaskStatus
from .models.task import Task

log = structlog.get_logger()


def derive_parent_status(children: Iterable[Task]) -> TaskStatus:
    """根据直接子任务推导父任务状态

    规则（按优先级）：
    1. 全部 Done -> Done
    2. 全部为 Done 或 Suspended，且至少一个 Suspended -> Suspended
    3. 任一 InProgress -> InProgress
    4. 其他 -> NotStarted
    """
    statuses = [c.status for c in children]
    if all(s == TaskStatus.DONE for s in statuses):
        return TaskStatus.DONE
    if TaskStatus.SUSPENDED in statuses and all(
        s in (TaskStatus.DONE, TaskStatus.SUSPENDED) for s in statuses
    ):
        return TaskStatus.SUSPENDED
    if TaskStatus.IN_PROGRESS in statuses:
        return TaskStatus.IN_PROGRESS
    return TaskStatus.NOT_STARTED


def recalculate_status(tasks: Iterable[Task], now: int) -> list[Task]:
    """重算父任务状态直到不动点

    Args:
        tasks: 扁平任务列表（含墓碑）
        now: 状态变化时写入 last_updated 的时间

    Returns:
        新任务列表，顺序与输入一致

    Raises:
        StatusPropagationError: 超过 len(tasks) + 1 轮仍未收敛
    """
    result = list(tasks)
    max_passes = len(result) + 1

    for _ in range(max_passes):
        changed = False
        for i, task in enumerate(result):
            if task.is_deleted:
                continue
            children = [
                c for c in result
                if not c.is_deleted and c.parent_id == task.id and c.id != task.id
            ]
            if not children:
                continue
            new_status = derive_parent_status(children)
            if new_status != task.status:
                result[i] = task.model_copy(
                    update={"status": new_status, "last_updated": now}
                )
                changed = True
        if not changed:
            return result

    log.error("status_propagation_not_converged", task_count=len(result), passes=max_passes)
    raise StatusPropagationError(max_passes)


def cascade_parent_status(
    tasks: Iterable[Task],
    parent_id: str,
    status: TaskStatus,
    now: int,
) -> list[Task]:
    """用户直接设置父任务状态时的级联写入

    - Done：所有未删除后代强制为 Done（覆盖 Suspended）
    - NotStarted / InProgress / Suspended：未删除且不是 Done、Suspended 的后代
      改为同一状态

    级联后父任务本身也写入目标状态，再整体执行一次状态传播。
    """
    source = list(tasks)
    targets = descendant_ids(source, parent_id)

    result: list[Task] = []
    for task in source:
        if task.id in targets and not task.is_deleted:
            if status == TaskStatus.DONE:
                overwrite = task.status != TaskStatus.DONE
            else:
                overwrite = (
                    task.status not in CASCADE_PROTECTED_STATES and task.status != status
                )
            if overwrite:
                task = task.model_copy(update={"status": status, "last_updated": now})
        elif task.id == parent_id and not task.is_deleted and task.status != status:
            task = task.model_copy(update={"status": status, "last_updated": now})
        result.append(task)

    return recalculate_status(result, now)
