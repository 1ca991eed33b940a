"""枚举定义

包含 TaskStatus 状态值（编码为 0-3 的小整数）以及父任务状态推导规则
用到的状态集合。
"""

from enum import IntEnum, StrEnum


class TaskStatus(IntEnum):
    """Task 状态 -- 以小整数编码，URL token 与存储均使用整数值"""

    NOT_STARTED = 0
    IN_PROGRESS = 1
    DONE = 2
    SUSPENDED = 3


# 父任务 NotStarted/InProgress 级联时不覆盖的子任务状态
CASCADE_PROTECTED_STATES: set[TaskStatus] = {
    TaskStatus.DONE,
    TaskStatus.SUSPENDED,
}

# 叶子任务进度权重（百分比）
PROGRESS_WEIGHTS: dict[TaskStatus, int] = {
    TaskStatus.NOT_STARTED: 0,
    TaskStatus.IN_PROGRESS: 50,
    TaskStatus.DONE: 100,
    TaskStatus.SUSPENDED: 0,
}


class ViolationKind(StrEnum):
    """任务森林不变量违例类型"""

    DUPLICATE_ID = "duplicate_id"
    ORPHAN_PARENT = "orphan_parent"
    SIBLING_NAME_COLLISION = "sibling_name_collision"
    CYCLE = "cycle"
