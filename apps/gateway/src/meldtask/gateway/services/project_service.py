"""ProjectService -- 项目文档的加载、修改与保存

每次修改流程：
1. 从存储加载存储键下的全部项目
2. 对目标项目执行核心操作（纯函数，返回新文档）
3. 整体保存并记录 undo 历史

写操作串行执行，避免同一存储键下的"加载-修改-保存"交错。
"""

import asyncio
from collections.abc import Callable

import structlog
from meldtask.core.config import MeldTaskConfig
from meldtask.core.exceptions import ProjectNotFoundError, TaskOperationError
from meldtask.core.ids import allocate_project_id
from meldtask.core.models import ProjectDocument, now_ms
from meldtask.core.operations import create_project
from meldtask.core.store import StoreGroup

from .history_hub import HistoryHub

log = structlog.get_logger()

DocumentUpdate = Callable[[ProjectDocument], ProjectDocument]


class StaleProjectError(TaskOperationError):
    """存储中的项目已不是调用方所基于的版本"""

    code = "PROJECT_STALE"

    def __init__(self, project_id: str) -> None:
        super().__init__(f"项目 {project_id} 已被修改")
        self.project_id = project_id


class ProjectService:
    """项目业务服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        config: MeldTaskConfig,
        history_hub: HistoryHub | None = None,
    ) -> None:
        self._stores = store_group
        self._config = config
        self._history = history_hub or HistoryHub(config.history_limit)
        self._write_lock = asyncio.Lock()

    @property
    def history(self) -> HistoryHub:
        return self._history

    async def _load_all(self) -> list[ProjectDocument]:
        documents = await self._stores.project_store.load(self._config.store_key)
        return documents or []

    async def list_projects(self) -> list[ProjectDocument]:
        return await self._load_all()

    async def get_project(self, project_id: str) -> ProjectDocument:
        for document in await self._load_all():
            if document.id == project_id:
                return document
        raise ProjectNotFoundError(project_id)

    async def create_project(self, project_name: str | None = None) -> ProjectDocument:
        """分配项目 ID 并创建空项目"""
        async with self._write_lock:
            project_id = await allocate_project_id(
                self._stores.project_store,
                self._config.project_sequence,
            )
            document = create_project(
                project_id,
                project_name or self._config.default_project_name,
                now_ms(),
            )
            documents = await self._load_all()
            await self._stores.project_store.save(
                self._config.store_key,
                [*documents, document],
            )
        log.info("project_created", project_id=project_id)
        return document

    async def update(self, project_id: str, change: DocumentUpdate) -> ProjectDocument:
        """对项目执行修改并保存

        change 抛出的 TaskOperationError 原样向上传播，存储不变。
        """
        async with self._write_lock:
            documents = await self._load_all()
            index = self._index_of(documents, project_id)
            before = documents[index]
            after = change(before)
            if after == before:
                return before
            documents[index] = after
            await self._stores.project_store.save(self._config.store_key, documents)
            self._history.record(before, after)
        return after

    async def put_project(self, document: ProjectDocument) -> ProjectDocument:
        """保存完整文档：同 ID 项目存在时替换，否则追加"""
        async with self._write_lock:
            documents = await self._load_all()
            before = next((d for d in documents if d.id == document.id), None)
            if before is None:
                documents.append(document)
            else:
                documents[documents.index(before)] = document
            await self._stores.project_store.save(self._config.store_key, documents)
            if before is not None:
                self._history.record(before, document)
        log.info("project_stored", project_id=document.id, replaced=before is not None)
        return document

    async def replace_if_unchanged(
        self,
        expected: ProjectDocument,
        document: ProjectDocument,
    ) -> ProjectDocument:
        """存储中的项目仍等于 expected 时以 document 替换

        Raises:
            ProjectNotFoundError: 项目已被删除
            StaleProjectError: 项目在 expected 之后被修改过
        """
        async with self._write_lock:
            documents = await self._load_all()
            index = self._index_of(documents, expected.id)
            before = documents[index]
            if before != expected:
                raise StaleProjectError(expected.id)
            documents[index] = document
            await self._stores.project_store.save(self._config.store_key, documents)
            self._history.record(before, document)
        log.info("project_replaced", project_id=document.id)
        return document

    async def delete_project(self, project_id: str) -> None:
        async with self._write_lock:
            deleted = await self._stores.project_store.delete_project(
                self._config.store_key,
                project_id,
            )
        if not deleted:
            raise ProjectNotFoundError(project_id)
        self._history.forget(project_id)
        log.info("project_deleted", project_id=project_id)

    async def undo(self, project_id: str) -> ProjectDocument:
        return await self._travel(project_id, redo=False)

    async def redo(self, project_id: str) -> ProjectDocument:
        return await self._travel(project_id, redo=True)

    async def _travel(self, project_id: str, redo: bool) -> ProjectDocument:
        async with self._write_lock:
            documents = await self._load_all()
            index = self._index_of(documents, project_id)
            history = self._history.get(project_id)
            # 存储被其他途径改写过时历史失效
            if history is None or history.present != documents[index]:
                return documents[index]
            target = history.redo() if redo else history.undo()
            if target != documents[index]:
                documents[index] = target
                await self._stores.project_store.save(self._config.store_key, documents)
        log.debug("history_travel", project_id=project_id, redo=redo)
        return target

    @staticmethod
    def _index_of(documents: list[ProjectDocument], project_id: str) -> int:
        for i, document in enumerate(documents):
            if document.id == project_id:
                return i
        raise ProjectNotFoundError(project_id)
