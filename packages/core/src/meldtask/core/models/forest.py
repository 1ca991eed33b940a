"""任务森林结构视图与不变量违例模型"""

from pydantic import BaseModel, Field

from .enums import ViolationKind
from .task import Task


class TaskNode(BaseModel):
    """树形视图节点（子节点按 order 排序）"""

    task: Task
    children: list["TaskNode"] = Field(default_factory=list)


class ForestViolation(BaseModel):
    """单条不变量违例"""

    kind: ViolationKind
    task_ids: list[str] = Field(default_factory=list)
    detail: str = ""

    def __str__(self) -> str:
        return f"{self.kind.value}({', '.join(self.task_ids)}){': ' + self.detail if self.detail else ''}"
