"""Undo/Redo 历史栈

有界的不可变快照栈：push 新状态会清空 redo 栈；
超过上限时丢弃最旧的快照。
"""

from typing import Generic, TypeVar

T = TypeVar("T")

DEFAULT_HISTORY_LIMIT = 50


class History(Generic[T]):
    """有界 undo/redo 历史"""

    def __init__(self, initial: T, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if limit < 1:
            raise ValueError(f"历史上限必须为正数: {limit}")
        self._limit = limit
        self._past: list[T] = []
        self._present = initial
        self._future: list[T] = []

    @property
    def present(self) -> T:
        return self._present

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    def push(self, state: T) -> T:
        """记录新状态；与当前状态相等时忽略"""
        if state == self._present:
            return self._present
        self._past.append(self._present)
        if len(self._past) > self._limit:
            self._past.pop(0)
        self._present = state
        self._future.clear()
        return self._present

    def reset(self, state: T) -> T:
        """不保留历史地替换当前状态（加载时使用）"""
        self._past.clear()
        self._future.clear()
        self._present = state
        return self._present

    def undo(self) -> T:
        """回到上一个状态；没有历史时保持不变"""
        if self._past:
            self._future.insert(0, self._present)
            self._present = self._past.pop()
        return self._present

    def redo(self) -> T:
        """重做；没有可重做状态时保持不变"""
        if self._future:
            self._past.append(self._present)
            self._present = self._future.pop(0)
        return self._present
