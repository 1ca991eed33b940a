"""ProjectStore SQLite 实现

projects 表按存储键保存 ProjectDocument 的 JSON 载荷，
加载时原样还原；sequences 表提供原子递增计数器。
"""

import aiosqlite
import structlog

from ..exceptions import ForestInvariantError, MeldTaskError
from ..forest import validate_forest
from ..models.task import ProjectDocument, now_ms

log = structlog.get_logger()


class SqliteProjectStore:
    """ProjectStore + SequenceSource 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def load(self, key: str) -> list[ProjectDocument] | None:
        """加载存储键下的全部项目（按保存时的顺序）"""
        cursor = await self._conn.execute(
            "SELECT 1 FROM store_keys WHERE store_key = ?",
            (key,),
        )
        if await cursor.fetchone() is None:
            return None
        cursor = await self._conn.execute(
            "SELECT payload FROM projects WHERE store_key = ? ORDER BY position",
            (key,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_document(row) for row in rows]

    async def save(self, key: str, documents: list[ProjectDocument]) -> None:
        """整体替换存储键下的项目

        Raises:
            ForestInvariantError: 任一文档的任务森林不合法
            MeldTaskError: 同一次保存中项目 ID 重复
        """
        seen: set[str] = set()
        for document in documents:
            if document.id in seen:
                raise MeldTaskError(f"重复的项目 ID: {document.id}", recoverable=False)
            seen.add(document.id)
            violations = validate_forest(document.tasks)
            if violations:
                raise ForestInvariantError(document.id, violations)

        try:
            await self._conn.execute(
                """
                INSERT INTO store_keys (store_key, saved_at) VALUES (?, ?)
                ON CONFLICT(store_key) DO UPDATE SET saved_at = excluded.saved_at
                """,
                (key, now_ms()),
            )
            await self._conn.execute("DELETE FROM projects WHERE store_key = ?", (key,))
            for position, document in enumerate(documents):
                attributes = document.attributes or {}
                await self._conn.execute(
                    """
                    INSERT INTO projects (store_key, project_id, position, project_name,
                                          last_synced, is_public, public_role, payload)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        key,
                        document.id,
                        position,
                        document.project_name,
                        document.last_synced,
                        1 if attributes.get("is_public") else 0,
                        attributes.get("public_role"),
                        document.model_dump_json(),
                    ),
                )
            await self._conn.commit()
        except Exception:
            await self._conn.rollback()
            raise
        log.debug("projects_saved", store_key=key, count=len(documents))

    async def delete_project(self, key: str, project_id: str) -> bool:
        """删除单个项目，返回是否存在"""
        cursor = await self._conn.execute(
            "DELETE FROM projects WHERE store_key = ? AND project_id = ?",
            (key, project_id),
        )
        await self._conn.commit()
        return cursor.rowcount > 0

    async def next_sequence(self, name: str) -> int:
        """原子递增计数器并返回递增前的值（零基）"""
        cursor = await self._conn.execute(
            """
            INSERT INTO sequences (name, value) VALUES (?, 1)
            ON CONFLICT(name) DO UPDATE SET value = value + 1
            RETURNING value
            """,
            (name,),
        )
        row = await cursor.fetchone()
        await cursor.close()
        await self._conn.commit()
        return row[0] - 1

    @staticmethod
    def _row_to_document(row: aiosqlite.Row) -> ProjectDocument:
        """将数据库行转换为 ProjectDocument 模型"""
        return ProjectDocument.model_validate_json(row[0])
