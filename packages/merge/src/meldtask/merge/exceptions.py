"""Merge 异常体系

重名冲突是预期内的结果（MergeOutcome.status == CONFLICT），不在这里。
这里只定义被拒绝的合并意图。
"""

from meldtask.core.exceptions import TaskOperationError


class MergeError(TaskOperationError):
    """合并意图被拒绝"""

    code = "MERGE_REJECTED"


class UnknownMergeRowError(MergeError):
    """行 ID 不存在"""

    code = "MERGE_ROW_NOT_FOUND"

    def __init__(self, row_id: str) -> None:
        super().__init__(f"合并行 {row_id} 不存在")
        self.row_id = row_id


class InvalidMergeActionError(MergeError):
    """该行类型不允许此操作"""

    code = "INVALID_MERGE_ACTION"

    def __init__(self, row_id: str, action: str, kind: str) -> None:
        super().__init__(f"合并行 {row_id}（{kind}）不允许操作 {action}")
        self.row_id = row_id
        self.action = action
        self.kind = kind


class DuplicateTaskIdError(MergeError):
    """参与合并的文档内存在重复任务 ID（无法按 ID 对齐）"""

    code = "DUPLICATE_TASK_ID"

    def __init__(self, side: str, project_id: str, task_ids: list[str]) -> None:
        super().__init__(
            f"{side} 文档（项目 {project_id}）含重复任务 ID: {', '.join(task_ids)}"
        )
        self.side = side
        self.project_id = project_id
        self.task_ids = task_ids
