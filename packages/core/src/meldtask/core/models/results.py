"""核心操作的结果模型

移动被拒绝属于预期结果，以 MoveResult 返回，任务列表保持不变。
"""

from enum import StrEnum

from pydantic import BaseModel, Field

from .task import Task


class MoveRejection(StrEnum):
    """移动被拒绝的原因"""

    TASK_NOT_FOUND = "task_not_found"
    PARENT_NOT_FOUND = "parent_not_found"
    SELF_PARENT = "self_parent"
    CYCLE = "cycle"


class MoveResult(BaseModel):
    """移动/重排结果"""

    moved: bool = Field(description="是否实际执行了移动")
    tasks: list[Task] = Field(description="移动后的任务列表（被拒绝时为原列表）")
    rejection: MoveRejection | None = Field(default=None, description="拒绝原因")
