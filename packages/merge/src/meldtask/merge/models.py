"""Merge 数据模型 -- 逐行对比视图与合并结果"""

from enum import StrEnum

from pydantic import BaseModel, Field

from meldtask.core.models import ProjectDocument, Task


class MergePriority(StrEnum):
    """双边不一致行的默认取舍"""

    LOCAL = "LOCAL"
    REMOTE = "REMOTE"
    NEWEST = "NEWEST"  # 按 last_updated 取新，同一分钟内视为相同 -> 本地


class ResolveAction(StrEnum):
    """单行处理方式"""

    KEEP_LOCAL = "KEEP_LOCAL"
    KEEP_REMOTE = "KEEP_REMOTE"
    DELETE = "DELETE"
    ADD_REMOTE = "ADD_REMOTE"


class RowKind(StrEnum):
    """行类型"""

    LOCAL_ONLY = "LOCAL_ONLY"
    REMOTE_ONLY = "REMOTE_ONLY"
    BOTH = "BOTH"


# 每种行类型允许的操作
ALLOWED_ACTIONS: dict[RowKind, frozenset[ResolveAction]] = {
    RowKind.LOCAL_ONLY: frozenset({ResolveAction.KEEP_LOCAL, ResolveAction.DELETE}),
    RowKind.REMOTE_ONLY: frozenset({ResolveAction.ADD_REMOTE, ResolveAction.DELETE}),
    RowKind.BOTH: frozenset(
        {ResolveAction.KEEP_LOCAL, ResolveAction.KEEP_REMOTE, ResolveAction.DELETE}
    ),
}


class MergeStatus(StrEnum):
    """commit 结果"""

    MERGED = "MERGED"
    NOTHING_TO_MERGE = "NOTHING_TO_MERGE"
    CONFLICT = "CONFLICT"


class MergeRow(BaseModel):
    """按任务 ID 对齐的一行对比

    local / remote 只包含未删除任务；对侧同 ID 的墓碑放在
    local_tombstone / remote_tombstone 中供默认操作参考。
    """

    id: str
    kind: RowKind
    local: Task | None = None
    remote: Task | None = None
    local_tombstone: Task | None = None
    remote_tombstone: Task | None = None
    is_identical: bool = False
    visible: bool = True
    action: ResolveAction
    keep_both: bool = Field(default=False, description="保留双方版本（本地副本换新 ID）")
    rename: str | None = Field(default=None, description="提交时覆盖的名称")


class DuplicateName(BaseModel):
    """重名冲突：同一父任务下多个存活任务解析为同名"""

    parent_id: str | None
    name: str
    task_ids: list[str]


class MergeOutcome(BaseModel):
    """commit 结果；CONFLICT 时 document 为 None"""

    status: MergeStatus
    document: ProjectDocument | None = None
    conflicts: list[DuplicateName] = Field(default_factory=list)
    resurrected: dict[str, str] = Field(
        default_factory=dict,
        description="保留双方版本时本地副本的 旧 ID -> 新 ID",
    )
