"""meldtask Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import CASCADE_PROTECTED_STATES, PROGRESS_WEIGHTS, TaskStatus, ViolationKind
from .forest import ForestViolation, TaskNode
from .results import MoveRejection, MoveResult
from .task import (
    MS_PER_DAY,
    MS_PER_MINUTE,
    ProjectDocument,
    Task,
    minute_of,
    now_ms,
    resolve_deadline,
)

__all__ = [
    # 枚举
    "TaskStatus",
    "ViolationKind",
    "CASCADE_PROTECTED_STATES",
    "PROGRESS_WEIGHTS",
    # 实体
    "Task",
    "ProjectDocument",
    "resolve_deadline",
    # 时间
    "now_ms",
    "minute_of",
    "MS_PER_MINUTE",
    "MS_PER_DAY",
    # 森林
    "TaskNode",
    "ForestViolation",
    # 结果
    "MoveResult",
    "MoveRejection",
]
