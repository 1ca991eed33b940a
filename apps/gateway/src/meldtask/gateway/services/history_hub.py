"""HistoryHub -- 每个项目一份内存中的 undo/redo 历史"""

from meldtask.core.history import History
from meldtask.core.models import ProjectDocument


class HistoryHub:
    """按项目 ID 管理 History 实例"""

    def __init__(self, limit: int = 50) -> None:
        self._limit = limit
        self._histories: dict[str, History[ProjectDocument]] = {}

    def get(self, project_id: str) -> History[ProjectDocument] | None:
        return self._histories.get(project_id)

    def record(self, before: ProjectDocument, after: ProjectDocument) -> None:
        """记录一次修改

        历史的当前状态与修改前的存储状态不一致时（被其他途径改写过），
        先以存储状态重置历史。
        """
        history = self._histories.get(before.id)
        if history is None:
            history = History(before, limit=self._limit)
            self._histories[before.id] = history
        elif history.present != before:
            history.reset(before)
        history.push(after)

    def forget(self, project_id: str) -> None:
        self._histories.pop(project_id, None)
