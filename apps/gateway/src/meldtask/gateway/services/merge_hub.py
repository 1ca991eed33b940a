"""MergeSessionHub -- 进行中的合并会话（每个项目至多一个）"""

import structlog
from meldtask.core.exceptions import TaskOperationError
from meldtask.core.models import ProjectDocument
from meldtask.merge import MergePriority, MergeSession

log = structlog.get_logger()


class MergeSessionNotFoundError(TaskOperationError):
    """项目没有进行中的合并会话"""

    code = "MERGE_SESSION_NOT_FOUND"

    def __init__(self, project_id: str) -> None:
        super().__init__(f"项目 {project_id} 没有进行中的合并")
        self.project_id = project_id


class MergeSessionHub:
    """按项目 ID 保存 MergeSession；开始新合并会替换旧会话"""

    def __init__(self) -> None:
        self._sessions: dict[str, MergeSession] = {}

    def begin(
        self,
        local: ProjectDocument,
        remote: ProjectDocument,
        priority: MergePriority = MergePriority.LOCAL,
    ) -> MergeSession:
        if local.id in self._sessions:
            log.info("merge_session_replaced", project_id=local.id)
        session = MergeSession(local, remote, priority)
        self._sessions[local.id] = session
        return session

    def get(self, project_id: str) -> MergeSession:
        session = self._sessions.get(project_id)
        if session is None:
            raise MergeSessionNotFoundError(project_id)
        return session

    def close(self, project_id: str) -> bool:
        return self._sessions.pop(project_id, None) is not None
