"""ProjectStore SQLite 实现测试"""

import aiosqlite
import pytest
from meldtask.core.exceptions import ForestInvariantError, MeldTaskError
from meldtask.core.models import ProjectDocument, Task, TaskStatus
from meldtask.core.store import StoreGroup
from meldtask.core.store.sqlite_init import verify_wal_mode


def _document(project_id: str, name: str = "デモ", **kwargs) -> ProjectDocument:
    return ProjectDocument(
        id=project_id,
        project_name=name,
        tasks=[
            Task(id="1", name="設計", status=TaskStatus.DONE, order=1),
            Task(id="2", name="画面", parent_id="1", status=TaskStatus.DONE, order=1),
            Task(id="3", name="旧", is_deleted=True),
        ],
        last_synced=100,
        project_start_date=0,
        **kwargs,
    )


class TestSaveLoad:
    """保存与加载"""

    async def test_never_saved_key(self, store_group: StoreGroup) -> None:
        assert await store_group.project_store.load("nobody") is None

    async def test_saved_empty_list(self, store_group: StoreGroup) -> None:
        store = store_group.project_store
        await store.save("k", [])
        assert await store.load("k") == []

    async def test_roundtrip_preserves_everything(self, store_group: StoreGroup) -> None:
        store = store_group.project_store
        docs = [
            _document("b", attributes={"is_public": True, "public_role": "viewer"}),
            _document("a", name="二番目"),
        ]
        await store.save("k", docs)
        assert await store.load("k") == docs

    async def test_save_replaces(self, store_group: StoreGroup) -> None:
        store = store_group.project_store
        await store.save("k", [_document("a"), _document("b")])
        await store.save("k", [_document("c")])
        loaded = await store.load("k")
        assert [d.id for d in loaded] == ["c"]

    async def test_keys_isolated(self, store_group: StoreGroup) -> None:
        store = store_group.project_store
        await store.save("k1", [_document("a")])
        await store.save("k2", [_document("a", name="other")])
        assert (await store.load("k1"))[0].project_name == "デモ"
        assert (await store.load("k2"))[0].project_name == "other"

    async def test_invalid_forest_rejected(self, store_group: StoreGroup) -> None:
        store = store_group.project_store
        await store.save("k", [_document("a")])
        broken = ProjectDocument(
            id="a",
            project_name="x",
            tasks=[Task(id="1", name="dup"), Task(id="2", name="dup")],
        )
        with pytest.raises(ForestInvariantError) as exc_info:
            await store.save("k", [broken])
        assert exc_info.value.project_id == "a"
        # 原数据未被覆盖
        assert (await store.load("k"))[0].project_name == "デモ"

    async def test_duplicate_project_id(self, store_group: StoreGroup) -> None:
        with pytest.raises(MeldTaskError):
            await store_group.project_store.save("k", [_document("a"), _document("a")])

    async def test_delete_project(self, store_group: StoreGroup) -> None:
        store = store_group.project_store
        await store.save("k", [_document("a"), _document("b")])
        assert await store.delete_project("k", "a") is True
        assert await store.delete_project("k", "a") is False
        assert [d.id for d in await store.load("k")] == ["b"]

    async def test_public_columns(self, store_group: StoreGroup) -> None:
        await store_group.project_store.save(
            "k", [_document("a", attributes={"is_public": True, "public_role": "editor"})]
        )
        cursor = await store_group.conn.execute(
            "SELECT is_public, public_role FROM projects WHERE project_id = 'a'"
        )
        row = await cursor.fetchone()
        assert (row[0], row[1]) == (1, "editor")


class TestSequence:
    async def test_zero_based(self, store_group: StoreGroup) -> None:
        store = store_group.project_store
        assert await store.next_sequence("s") == 0
        assert await store.next_sequence("s") == 1


class TestSqliteInit:
    async def test_wal_mode(self, db_conn: aiosqlite.Connection) -> None:
        assert await verify_wal_mode(db_conn) is True
