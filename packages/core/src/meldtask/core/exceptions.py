"""Core 异常体系

MeldTaskError 为所有 meldtask 包的基础异常。
预期内的结果（解码失败、合并冲突、移动被拒绝）以结果模型返回，
不走异常；这里只定义内部错误与被拒绝的编辑意图。
"""


class MeldTaskError(Exception):
    """meldtask 基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 调用方是否可以提示用户后继续
        """
        super().__init__(message)
        self.recoverable = recoverable


class StatusPropagationError(MeldTaskError):
    """状态传播在迭代上限内未收敛（输入含环，属于内部错误）"""

    def __init__(self, passes: int) -> None:
        super().__init__(
            f"状态传播在 {passes} 轮内未收敛，输入可能含环",
            recoverable=False,
        )
        self.passes = passes


class AllocatorExhaustedError(MeldTaskError):
    """标识分配超过重试上限（实际不应触发）"""

    def __init__(self, domain: str, attempts: int) -> None:
        super().__init__(
            f"{domain} 标识分配在 {attempts} 次尝试后仍未成功",
            recoverable=False,
        )
        self.domain = domain
        self.attempts = attempts


class ForestInvariantError(MeldTaskError):
    """任务森林不变量被破坏，拒绝持久化"""

    def __init__(self, project_id: str, violations: list) -> None:
        super().__init__(
            f"项目 {project_id} 的任务森林不合法: "
            + "; ".join(str(v) for v in violations),
            recoverable=False,
        )
        self.project_id = project_id
        self.violations = violations


class TaskOperationError(MeldTaskError):
    """编辑意图被拒绝（用户可修正后重试）"""

    code = "TASK_OPERATION_REJECTED"


class TaskNotFoundError(TaskOperationError):
    """目标任务不存在或已删除"""

    code = "TASK_NOT_FOUND"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"任务 {task_id} 不存在")
        self.task_id = task_id


class DuplicateTaskNameError(TaskOperationError):
    """同一父任务下已存在同名任务"""

    code = "DUPLICATE_TASK_NAME"

    def __init__(self, name: str, parent_id: str | None) -> None:
        super().__init__(f"同一层级下已存在同名任务: {name}")
        self.name = name
        self.parent_id = parent_id


class EmptyTaskNameError(TaskOperationError):
    """任务名为空"""

    code = "EMPTY_TASK_NAME"

    def __init__(self) -> None:
        super().__init__("任务名不能为空")


class EmptyProjectNameError(TaskOperationError):
    """项目名为空"""

    code = "EMPTY_PROJECT_NAME"

    def __init__(self) -> None:
        super().__init__("项目名不能为空")


class ProjectNotFoundError(TaskOperationError):
    """项目不存在"""

    code = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str) -> None:
        super().__init__(f"项目 {project_id} 不存在")
        self.project_id = project_id
