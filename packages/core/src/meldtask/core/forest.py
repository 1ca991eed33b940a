"""任务森林工具 -- 结构查询、不变量校验与修复

所有函数只看未删除任务；墓碑任务对树形计算不可见。
输入为扁平任务列表，返回新列表，不修改入参。
"""

from collections import defaultdict
from collections.abc import Iterable

from .models.enums import PROGRESS_WEIGHTS, ViolationKind
from .models.forest import ForestViolation, TaskNode
from .models.task import Task


def active_tasks(tasks: Iterable[Task]) -> list[Task]:
    """过滤出未删除任务，保持原顺序"""
    return [t for t in tasks if not t.is_deleted]


def children_map(tasks: Iterable[Task]) -> dict[str | None, list[Task]]:
    """parent_id -> 直接子任务列表（仅未删除任务，保持原顺序）"""
    result: dict[str | None, list[Task]] = defaultdict(list)
    for task in tasks:
        if not task.is_deleted:
            result[task.parent_id].append(task)
    return result


def sorted_siblings(tasks: Iterable[Task], parent_id: str | None) -> list[Task]:
    """指定父任务下的未删除子任务，按 order 稳定排序"""
    siblings = [t for t in tasks if not t.is_deleted and t.parent_id == parent_id]
    return sorted(siblings, key=lambda t: t.order)


def descendant_ids(tasks: Iterable[Task], root_id: str) -> set[str]:
    """root_id 的全部未删除后代 ID（不含自身）"""
    by_parent = children_map(tasks)
    found: set[str] = set()
    stack = [root_id]
    while stack:
        current = stack.pop()
        for child in by_parent.get(current, []):
            if child.id not in found and child.id != root_id:
                found.add(child.id)
                stack.append(child.id)
    return found


def ancestor_chain(tasks: Iterable[Task], task_id: str | None) -> list[str]:
    """从 task_id 起沿 parent_id 向上的 ID 链（含自身，遇环即停）"""
    by_id = {t.id: t for t in tasks if not t.is_deleted}
    chain: list[str] = []
    seen: set[str] = set()
    current = task_id
    while current is not None and current not in seen:
        seen.add(current)
        chain.append(current)
        task = by_id.get(current)
        current = task.parent_id if task else None
    return chain


def build_tree(tasks: Iterable[Task]) -> list[TaskNode]:
    """构建有序树形视图

    父任务不存在或已删除的任务视为根；兄弟节点按 order 排序。
    """
    live = active_tasks(tasks)
    nodes = {t.id: TaskNode(task=t) for t in live}
    roots: list[TaskNode] = []
    for task in live:
        node = nodes[task.id]
        if task.parent_id is not None and task.parent_id in nodes and task.parent_id != task.id:
            nodes[task.parent_id].children.append(node)
        else:
            roots.append(node)

    def _sort(items: list[TaskNode]) -> None:
        items.sort(key=lambda n: n.task.order)
        for item in items:
            _sort(item.children)

    _sort(roots)
    return roots


def project_progress(tasks: Iterable[Task]) -> int:
    """项目进度（百分比）：对未删除的叶子任务按状态权重取平均"""
    live = active_tasks(tasks)
    parent_ids = {t.parent_id for t in live if t.parent_id is not None}
    leaves = [t for t in live if t.id not in parent_ids]
    if not leaves:
        return 0
    total = sum(PROGRESS_WEIGHTS[t.status] for t in leaves)
    return round(total / len(leaves))


def _find_cycles(live: list[Task]) -> list[list[str]]:
    """找出 parent_id 图中的所有环，按首次出现顺序返回"""
    by_id = {t.id: t for t in live}
    state: dict[str, int] = {}  # 1: 访问中, 2: 已完成
    cycles: list[list[str]] = []
    for task in live:
        if task.id in state:
            continue
        path: list[str] = []
        current: str | None = task.id
        while current is not None and current in by_id and current not in state:
            state[current] = 1
            path.append(current)
            current = by_id[current].parent_id
        if current is not None and state.get(current) == 1:
            cycles.append(path[path.index(current):])
        for visited in path:
            state[visited] = 2
    return cycles


def validate_forest(tasks: Iterable[Task]) -> list[ForestViolation]:
    """校验任务森林不变量

    检查项：
    1. ID 重复（含墓碑，标识永不复用）
    2. parent_id 指向不存在或已删除的任务
    3. 同一父任务下未删除任务重名
    4. parent_id 图存在环
    """
    all_tasks = list(tasks)
    violations: list[ForestViolation] = []

    seen_ids: dict[str, int] = defaultdict(int)
    for task in all_tasks:
        seen_ids[task.id] += 1
    for task_id, count in seen_ids.items():
        if count > 1:
            violations.append(
                ForestViolation(kind=ViolationKind.DUPLICATE_ID, task_ids=[task_id])
            )

    live = active_tasks(all_tasks)
    live_ids = {t.id for t in live}
    for task in live:
        if task.parent_id is not None and task.parent_id not in live_ids:
            violations.append(
                ForestViolation(
                    kind=ViolationKind.ORPHAN_PARENT,
                    task_ids=[task.id],
                    detail=task.parent_id,
                )
            )

    by_slot: dict[tuple[str | None, str], list[str]] = defaultdict(list)
    for task in live:
        by_slot[(task.parent_id, task.name)].append(task.id)
    for (_, name), ids in by_slot.items():
        if len(ids) > 1:
            violations.append(
                ForestViolation(
                    kind=ViolationKind.SIBLING_NAME_COLLISION,
                    task_ids=ids,
                    detail=name,
                )
            )

    for cycle in _find_cycles(live):
        violations.append(ForestViolation(kind=ViolationKind.CYCLE, task_ids=cycle))

    return violations


def normalize_forest(tasks: Iterable[Task]) -> list[Task]:
    """修复可自动修复的结构问题

    - 指向不存在/已删除任务的 parent_id 清空为根
    - 环中最先出现在列表里的任务被提升为根
    同名冲突与重复 ID 无法自动修复，交由调用方处理。
    """
    result = list(tasks)
    live_ids = {t.id for t in result if not t.is_deleted}
    result = [
        t.model_copy(update={"parent_id": None})
        if not t.is_deleted and t.parent_id is not None and t.parent_id not in live_ids
        else t
        for t in result
    ]

    position = {t.id: i for i, t in enumerate(result)}
    while True:
        cycles = _find_cycles(active_tasks(result))
        if not cycles:
            return result
        cut = min(cycles[0], key=lambda task_id: position[task_id])
        index = position[cut]
        result[index] = result[index].model_copy(update={"parent_id": None})
