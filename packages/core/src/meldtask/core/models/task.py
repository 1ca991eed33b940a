"""Task / ProjectDocument 领域模型

ProjectDocument 是编解码与合并引擎共同操作的单元：
项目标识、项目名与其任务森林（含软删除的墓碑任务）。
时间戳统一使用 epoch 毫秒整数。
"""

import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import TaskStatus

MS_PER_MINUTE = 60_000
MS_PER_DAY = 86_400_000


def now_ms() -> int:
    """当前时间（epoch 毫秒）"""
    return int(time.time() * 1000)


def minute_of(ts: int) -> int:
    """时间戳所在的分钟序号，用于"同一分钟内视为相同"的比较"""
    return ts // MS_PER_MINUTE


class Task(BaseModel):
    """任务森林中的一个节点

    parent_id 为 None 表示根任务；is_deleted 为墓碑标记，
    墓碑任务不参与任何树形计算，但保留以保证删除在合并时不会复活。
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="项目内唯一的短标识")
    name: str = Field(description="任务名，同一父任务下的未删除任务中唯一")
    status: TaskStatus = Field(default=TaskStatus.NOT_STARTED, description="当前状态")
    parent_id: str | None = Field(default=None, description="父任务 ID")
    deadline: int | None = Field(default=None, description="截止时间（epoch 毫秒）")
    deadline_offset: int | None = Field(
        default=None,
        description="旧版截止时间表示：相对项目开始日期的天数",
    )
    order: int = Field(default=0, description="兄弟任务间排序值")
    last_updated: int = Field(default=0, description="最后修改时间（epoch 毫秒）")
    is_deleted: bool = Field(default=False, description="墓碑标记")

    @field_validator("parent_id")
    @classmethod
    def _empty_parent_is_root(cls, value: str | None) -> str | None:
        # 空字符串同样表示根任务
        if value == "":
            return None
        return value


class ProjectDocument(BaseModel):
    """项目文档 -- 存储协作方保存/加载、编解码与合并的基本单元

    attributes 为云端/分享相关的不透明附加记录，核心逻辑从不读取或修改。
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="项目 ID")
    project_name: str = Field(description="项目名")
    tasks: list[Task] = Field(default_factory=list, description="任务列表（含墓碑）")
    last_synced: int = Field(default=0, description="最后同步时间（epoch 毫秒）")
    project_start_date: int | None = Field(
        default=None,
        description="项目开始日期（epoch 毫秒），deadline_offset 的锚点",
    )
    attributes: dict[str, Any] | None = Field(
        default=None,
        description="不透明的云端/分享属性，原样透传",
    )

    def get_task(self, task_id: str) -> Task | None:
        """按 ID 查询任务（含墓碑）"""
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def with_tasks(self, tasks: list[Task], last_synced: int | None = None) -> "ProjectDocument":
        """返回替换任务列表后的新文档"""
        update: dict[str, Any] = {"tasks": tasks}
        if last_synced is not None:
            update["last_synced"] = last_synced
        return self.model_copy(update=update)


def resolve_deadline(task: Task, document: ProjectDocument) -> int | None:
    """计算任务的绝对截止时间

    两种表示都需支持读取：绝对时间优先；只有天数偏移时
    以项目开始日期为锚点换算，缺少锚点则无法换算。
    """
    if task.deadline is not None:
        return task.deadline
    if task.deadline_offset is None or document.project_start_date is None:
        return None
    return document.project_start_date + task.deadline_offset * MS_PER_DAY
