"""Store Protocol 接口定义

定义 ProjectStore 的抽象接口，使用 Python Protocol 实现结构化子类型（duck typing）。
SequenceSource 定义在 ids 模块，这里一并导出。
"""

from typing import Protocol

from ..ids import SequenceSource
from ..models.task import ProjectDocument

__all__ = ["ProjectStore", "SequenceSource"]


class ProjectStore(Protocol):
    """项目文档存储接口

    同一存储键下保存一组项目文档，保存/加载不改变文档内容。
    """

    async def load(self, key: str) -> list[ProjectDocument] | None:
        """加载存储键下的全部项目；从未保存过时返回 None"""
        ...

    async def save(self, key: str, documents: list[ProjectDocument]) -> None:
        """以给定列表整体替换存储键下的项目"""
        ...

    async def delete_project(self, key: str, project_id: str) -> bool:
        """删除单个项目，返回是否存在"""
        ...

