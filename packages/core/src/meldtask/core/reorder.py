"""重挂载/重排引擎

把一个任务移动到新位置（可选地换父任务），维持森林不变量：
不产生环、兄弟 order 在重排后连续（1 起）。
根层水平拖放的几何判定（root_insert_index）与纯数据重排
（reorder_roots）分开，核心逻辑不依赖渲染层即可测试。
"""

from collections.abc import Iterable, Mapping, Sequence

import structlog

from .forest import ancestor_chain, sorted_siblings
from .models.results import MoveRejection, MoveResult
from .models.task import Task
from .status import recalculate_status

log = structlog.get_logger()


def _renumber(
    tasks: list[Task],
    ordered_ids: Sequence[str],
    now: int,
    touched: set[str],
    parent_id: str | None,
) -> None:
    """按给定顺序把 order 改写为 1..n，order 变化的任务更新 last_updated"""
    index = {t.id: i for i, t in enumerate(tasks)}
    for position, task_id in enumerate(ordered_ids, start=1):
        i = index[task_id]
        task = tasks[i]
        update: dict = {}
        if task.order != position:
            update["order"] = position
        if task.parent_id != parent_id:
            update["parent_id"] = parent_id
        if update or task_id in touched:
            update["last_updated"] = now
            tasks[i] = task.model_copy(update=update)


def move_task(
    tasks: Iterable[Task],
    task_id: str,
    new_parent_id: str | None,
    index: int | None = None,
    *,
    now: int,
) -> MoveResult:
    """移动任务到 new_parent_id 下的第 index 个位置

    Args:
        tasks: 扁平任务列表
        task_id: 被移动的任务
        new_parent_id: 新父任务，None 表示根
        index: 在新兄弟列表（不含自身）中的插入位置，None 表示追加到末尾
        now: 写入 last_updated 的时间

    Returns:
        MoveResult；自挂载、成环、目标不存在时 moved=False 且任务列表不变
    """
    source = list(tasks)
    by_id = {t.id: t for t in source if not t.is_deleted}

    active = by_id.get(task_id)
    if active is None:
        return MoveResult(moved=False, tasks=source, rejection=MoveRejection.TASK_NOT_FOUND)
    if new_parent_id == task_id:
        return MoveResult(moved=False, tasks=source, rejection=MoveRejection.SELF_PARENT)
    if new_parent_id is not None:
        if new_parent_id not in by_id:
            return MoveResult(
                moved=False, tasks=source, rejection=MoveRejection.PARENT_NOT_FOUND
            )
        # 新父任务的祖先链中出现自身即成环
        if task_id in ancestor_chain(source, new_parent_id):
            log.info("move_rejected_cycle", task_id=task_id, new_parent_id=new_parent_id)
            return MoveResult(moved=False, tasks=source, rejection=MoveRejection.CYCLE)

    old_parent_id = active.parent_id
    result = list(source)

    siblings = [t.id for t in sorted_siblings(result, new_parent_id) if t.id != task_id]
    insert_at = len(siblings) if index is None else max(0, min(index, len(siblings)))
    siblings.insert(insert_at, task_id)
    _renumber(result, siblings, now, touched={task_id}, parent_id=new_parent_id)

    if old_parent_id != new_parent_id:
        vacated = [t.id for t in sorted_siblings(result, old_parent_id)]
        _renumber(result, vacated, now, touched=set(), parent_id=old_parent_id)

    return MoveResult(moved=True, tasks=recalculate_status(result, now))


def reorder_roots(
    tasks: Iterable[Task],
    ordered_root_ids: Sequence[str],
    *,
    now: int,
) -> list[Task]:
    """按最终根任务顺序重排

    列表中的任务全部成为根任务，order 依次为 1..n 并更新 last_updated；
    不在列表中的任务保持不变。
    """
    result = list(tasks)
    live_ids = {t.id for t in result if not t.is_deleted}
    ordered = [task_id for task_id in ordered_root_ids if task_id in live_ids]
    _renumber(result, ordered, now, touched=set(ordered), parent_id=None)
    return recalculate_status(result, now)


def root_insert_index(anchor_x: float, slot_centers: Sequence[float]) -> int:
    """根层插入位置：第一个中心点在锚点右侧的槽位，否则追加到末尾"""
    for i, center in enumerate(slot_centers):
        if anchor_x < center:
            return i
    return len(slot_centers)


def move_to_root(
    tasks: Iterable[Task],
    task_id: str,
    anchor_x: float,
    slot_centers: Mapping[str, float],
    *,
    now: int,
) -> MoveResult:
    """把任务拖放到根层

    Args:
        tasks: 扁平任务列表
        task_id: 被移动的任务
        anchor_x: 拖放位置的水平中心
        slot_centers: 现有根任务 ID -> 屏幕上的水平中心；缺失的槽位不参与比较
        now: 写入 last_updated 的时间
    """
    source = list(tasks)
    if not any(t.id == task_id and not t.is_deleted for t in source):
        return MoveResult(moved=False, tasks=source, rejection=MoveRejection.TASK_NOT_FOUND)

    roots = [t.id for t in sorted_siblings(source, None) if t.id != task_id]
    measured = [root_id for root_id in roots if root_id in slot_centers]
    insert_at = root_insert_index(anchor_x, [slot_centers[r] for r in measured])
    if insert_at < len(measured):
        insert_at = roots.index(measured[insert_at])
    else:
        insert_at = len(roots)
    roots.insert(insert_at, task_id)

    result = reorder_roots(source, roots, now=now)
    old_parent_id = next(t.parent_id for t in source if t.id == task_id)
    if old_parent_id is not None:
        vacated = [t.id for t in sorted_siblings(result, old_parent_id)]
        _renumber(result, vacated, now, touched=set(), parent_id=old_parent_id)
        result = recalculate_status(result, now)
    return MoveResult(moved=True, tasks=result)
