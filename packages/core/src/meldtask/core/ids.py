"""顺序标识分配器

三个分配域：
- 项目 ID：外部原子计数器给出的零基整数，用 64 符号字母表渲染（高位在前）
- 任务 ID：文档内任务数的 36 进制表示，冲突时递增重试
- 复活 ID：合并时为被替换的本地任务分配，64 符号字母表从 0 起跳过已占用值

所有重试循环都有上限（已知 ID 空间大小 + 1 的 10 倍），超限视为内部错误。
"""

from collections.abc import Iterable
from typing import Protocol

import structlog

from .exceptions import AllocatorExhaustedError

log = structlog.get_logger()

# 64 符号字母表：小写、大写、数字、两个 URL 安全符号；0 渲染为 "a"
ALPHABET_64 = (
    "abcdefghijklmnopqrstuvwxyz"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "0123456789"
    "-_"
)
_INDEX_64 = {ch: i for i, ch in enumerate(ALPHABET_64)}

_DIGITS_36 = "0123456789abcdefghijklmnopqrstuvwxyz"

# 重试上限倍数
RETRY_FACTOR = 10


class SequenceSource(Protocol):
    """原子递增计数器（由存储协作方提供）"""

    async def next_sequence(self, name: str) -> int:
        """原子地取出下一个零基整数，每个值只发放一次"""
        ...


def to_base64_token(value: int) -> str:
    """非负整数 -> 64 符号字母表字符串（高位在前，0 -> "a"）"""
    if value < 0:
        raise ValueError(f"标识值不能为负数: {value}")
    if value == 0:
        return ALPHABET_64[0]
    digits: list[str] = []
    while value > 0:
        value, rem = divmod(value, 64)
        digits.append(ALPHABET_64[rem])
    return "".join(reversed(digits))


def from_base64_token(token: str) -> int:
    """64 符号字母表字符串 -> 整数"""
    if not token:
        raise ValueError("空标识")
    value = 0
    for ch in token:
        if ch not in _INDEX_64:
            raise ValueError(f"非法标识字符: {ch!r}")
        value = value * 64 + _INDEX_64[ch]
    return value


def to_base36(value: int) -> str:
    """整数 -> 36 进制小写字符串（支持负数）"""
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    digits: list[str] = []
    while value > 0:
        value, rem = divmod(value, 36)
        digits.append(_DIGITS_36[rem])
    return sign + "".join(reversed(digits))


def render_project_id(sequence_value: int) -> str:
    """计数器取出的零基整数 -> 项目 ID"""
    return to_base64_token(sequence_value)


async def allocate_project_id(sequence: SequenceSource, name: str = "projects") -> str:
    """从外部原子计数器分配项目 ID

    Args:
        sequence: 提供 next_sequence 的存储协作方
        name: 计数器名称

    Returns:
        渲染后的项目 ID
    """
    value = await sequence.next_sequence(name)
    project_id = render_project_id(value)
    log.debug("project_id_allocated", sequence=name, value=value, project_id=project_id)
    return project_id


def allocate_task_id(existing_ids: Iterable[str]) -> str:
    """为新任务分配 ID

    候选值为 (现有任务数 + 1) 的 36 进制表示，与现有 ID（含墓碑）冲突时递增。

    Raises:
        AllocatorExhaustedError: 超过重试上限
    """
    taken = set(existing_ids)
    candidate = len(taken) + 1
    limit = RETRY_FACTOR * (len(taken) + 1)
    for _ in range(limit):
        task_id = to_base36(candidate)
        if task_id not in taken:
            return task_id
        candidate += 1
    raise AllocatorExhaustedError("task", limit)


class ResurrectionIdAllocator:
    """合并复活 ID 分配器

    从 0 开始按 64 符号字母表渲染，跳过任一参与文档中已存在的任务 ID
    以及本分配器已发出的 ID。
    """

    def __init__(self, *id_sets: Iterable[str]) -> None:
        self._taken: set[str] = set()
        for ids in id_sets:
            self._taken.update(ids)
        self._next = 0

    def allocate(self) -> str:
        """分配下一个未占用的 ID

        Raises:
            AllocatorExhaustedError: 超过重试上限
        """
        limit = RETRY_FACTOR * (len(self._taken) + 1)
        for _ in range(limit):
            candidate = to_base64_token(self._next)
            self._next += 1
            if candidate not in self._taken:
                self._taken.add(candidate)
                return candidate
        raise AllocatorExhaustedError("resurrection", limit)
