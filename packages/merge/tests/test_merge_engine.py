"""合并引擎测试"""

import pytest
from meldtask.core.exceptions import EmptyTaskNameError
from meldtask.core.forest import validate_forest
from meldtask.core.models import MS_PER_MINUTE, ProjectDocument, Task, TaskStatus
from meldtask.merge import (
    DuplicateTaskIdError,
    InvalidMergeActionError,
    MergePriority,
    MergeSession,
    MergeStatus,
    ResolveAction,
    RowKind,
    UnknownMergeRowError,
)

NOW = 1_000 * MS_PER_MINUTE


def _doc(*tasks: Task, name: str = "デモ", project_id: str = "p") -> ProjectDocument:
    return ProjectDocument(id=project_id, project_name=name, tasks=list(tasks), last_synced=1)


def _task(
    task_id: str,
    name: str,
    status: TaskStatus = TaskStatus.NOT_STARTED,
    parent_id: str | None = None,
    minute: int = 0,
    is_deleted: bool = False,
) -> Task:
    return Task(
        id=task_id,
        name=name,
        status=status,
        parent_id=parent_id,
        last_updated=minute * MS_PER_MINUTE,
        is_deleted=is_deleted,
    )


def _by_id(document: ProjectDocument) -> dict[str, Task]:
    return {t.id: t for t in document.tasks}


class TestIdentity:
    """完全相同的两份文档"""

    def test_nothing_to_merge(self) -> None:
        local = _doc(_task("1", "設計"), _task("2", "画面", parent_id="1"))
        session = MergeSession(local, local.model_copy(deep=True))
        assert session.is_noop
        assert session.visible_rows == []
        outcome = session.commit(NOW)
        assert outcome.status == MergeStatus.NOTHING_TO_MERGE
        assert outcome.document == local
        assert outcome.document.last_synced == 1

    def test_rows_classified(self) -> None:
        local = _doc(_task("1", "a"), _task("2", "b"))
        remote = _doc(_task("1", "a"), _task("3", "c"))
        kinds = {row.id: row.kind for row in MergeSession(local, remote).rows}
        assert kinds == {"1": RowKind.BOTH, "2": RowKind.LOCAL_ONLY, "3": RowKind.REMOTE_ONLY}


class TestPriority:
    """全局优先级决定双边不一致行的默认操作"""

    @pytest.fixture
    def pair(self) -> tuple[ProjectDocument, ProjectDocument]:
        local = _doc(
            _task("a", "Write draft", TaskStatus.DONE),
            _task("b", "Review", TaskStatus.IN_PROGRESS, parent_id="a"),
        )
        remote = _doc(
            _task("a", "Write draft", TaskStatus.DONE),
            _task("b", "Review", TaskStatus.DONE, parent_id="a"),
        )
        return local, remote

    def test_local_priority_keeps_local(self, pair) -> None:
        outcome = MergeSession(*pair, priority=MergePriority.LOCAL).commit(NOW)
        assert outcome.status == MergeStatus.MERGED
        assert _by_id(outcome.document)["b"].status == TaskStatus.IN_PROGRESS

    def test_remote_priority_takes_remote(self, pair) -> None:
        outcome = MergeSession(*pair, priority=MergePriority.REMOTE).commit(NOW)
        assert _by_id(outcome.document)["b"].status == TaskStatus.DONE
        assert _by_id(outcome.document)["a"].status == TaskStatus.DONE

    def test_set_priority_resets_rows(self, pair) -> None:
        session = MergeSession(*pair)
        assert session.get_row("b").action == ResolveAction.KEEP_LOCAL
        session.set_priority(MergePriority.REMOTE)
        assert session.get_row("b").action == ResolveAction.KEEP_REMOTE
        assert session.get_row("a").action == ResolveAction.KEEP_LOCAL

    def test_newest(self) -> None:
        local = _doc(_task("1", "x", minute=5), _task("2", "y", minute=9))
        remote = _doc(
            _task("1", "x", TaskStatus.DONE, minute=6),
            _task("2", "y", TaskStatus.DONE, minute=9),
        )
        session = MergeSession(local, remote, priority=MergePriority.NEWEST)
        assert session.get_row("1").action == ResolveAction.KEEP_REMOTE
        # 同一分钟内视为相同 -> 本地
        assert session.get_row("2").action == ResolveAction.KEEP_LOCAL

    def test_visibility_includes_ancestors(self) -> None:
        local = _doc(
            _task("1", "root"),
            _task("2", "mid", parent_id="1"),
            _task("3", "leaf", parent_id="2"),
            _task("4", "other"),
        )
        remote = _doc(
            _task("1", "root"),
            _task("2", "mid", parent_id="1"),
            _task("3", "leaf!", parent_id="2"),
            _task("4", "other"),
        )
        session = MergeSession(local, remote)
        assert [row.id for row in session.visible_rows] == ["1", "2", "3"]


class TestRowResolution:
    """逐行覆盖"""

    def test_delete_both_row(self) -> None:
        local = _doc(_task("1", "a"), _task("2", "b"))
        remote = _doc(_task("1", "a"), _task("2", "b"))
        session = MergeSession(local, remote)
        session.resolve_row("2", ResolveAction.DELETE)
        outcome = session.commit(NOW)
        task = _by_id(outcome.document)["2"]
        assert task.is_deleted
        assert task.last_updated == NOW

    def test_remote_only_can_be_dropped(self) -> None:
        local = _doc(_task("1", "a"))
        remote = _doc(_task("1", "a"), _task("2", "b"))
        session = MergeSession(local, remote)
        assert session.get_row("2").action == ResolveAction.ADD_REMOTE
        session.resolve_row("2", ResolveAction.DELETE)
        assert session.commit(NOW).status == MergeStatus.NOTHING_TO_MERGE

    def test_invalid_action_for_kind(self) -> None:
        session = MergeSession(_doc(_task("1", "a")), _doc())
        with pytest.raises(InvalidMergeActionError):
            session.resolve_row("1", ResolveAction.ADD_REMOTE)

    def test_unknown_row(self) -> None:
        session = MergeSession(_doc(), _doc())
        with pytest.raises(UnknownMergeRowError):
            session.resolve_row("zz", ResolveAction.DELETE)

    def test_keep_both_requires_conflicting_row(self) -> None:
        session = MergeSession(_doc(_task("1", "a")), _doc(_task("1", "a")))
        with pytest.raises(InvalidMergeActionError):
            session.keep_both("1")

    def test_empty_rename_rejected(self) -> None:
        session = MergeSession(_doc(_task("1", "a")), _doc())
        with pytest.raises(EmptyTaskNameError):
            session.resolve_rename("1", "   ")

    def test_orphans_cleared_to_root(self) -> None:
        local = _doc(_task("1", "P"))
        remote = _doc(_task("1", "P"), _task("2", "C", parent_id="1"))
        session = MergeSession(local, remote)
        session.resolve_row("1", ResolveAction.DELETE)
        outcome = session.commit(NOW)
        assert _by_id(outcome.document)["2"].parent_id is None
        assert validate_forest(outcome.document.tasks) == []

    def test_reject_remote(self) -> None:
        local = _doc(_task("1", "a"), _task("2", "b"))
        remote = _doc(_task("1", "a", TaskStatus.DONE), _task("3", "c"), name="remote")
        session = MergeSession(local, remote, priority=MergePriority.REMOTE)
        session.use_remote_project_name()
        session.reject_remote()
        assert session.get_row("3").action == ResolveAction.DELETE
        assert session.is_noop
        assert session.commit(NOW).status == MergeStatus.NOTHING_TO_MERGE

    def test_remote_project_name(self) -> None:
        local = _doc(_task("1", "a"))
        remote = _doc(_task("1", "a"), name="新しい名前")
        session = MergeSession(local, remote)
        assert session.is_noop
        session.use_remote_project_name()
        outcome = session.commit(NOW)
        assert outcome.status == MergeStatus.MERGED
        assert outcome.document.project_name == "新しい名前"
        assert outcome.document.id == "p"
        assert outcome.document.last_synced == NOW


class TestTombstones:
    """删除在合并中不会复活"""

    def test_local_delete_wins_over_older_remote(self) -> None:
        local = _doc(_task("1", "a"), _task("2", "b", minute=10, is_deleted=True))
        remote = _doc(_task("1", "a"), _task("2", "b", minute=5))
        session = MergeSession(local, remote)
        assert session.get_row("2").action == ResolveAction.DELETE
        assert session.commit(NOW).status == MergeStatus.NOTHING_TO_MERGE

    def test_newer_remote_edit_restores(self) -> None:
        local = _doc(_task("1", "a"), _task("2", "b", minute=10, is_deleted=True))
        remote = _doc(_task("1", "a"), _task("2", "b2", minute=20))
        session = MergeSession(local, remote)
        assert session.get_row("2").action == ResolveAction.ADD_REMOTE
        outcome = session.commit(NOW)
        assert [t.id for t in outcome.document.tasks] == ["1", "2"]
        assert not _by_id(outcome.document)["2"].is_deleted
        assert _by_id(outcome.document)["2"].name == "b2"

    def test_remote_delete_propagates(self) -> None:
        local = _doc(_task("1", "a"), _task("2", "b", minute=3))
        remote = _doc(_task("1", "a"), _task("2", "b", minute=7, is_deleted=True))
        session = MergeSession(local, remote)
        assert session.get_row("2").action == ResolveAction.DELETE
        outcome = session.commit(NOW)
        assert _by_id(outcome.document)["2"] == remote.tasks[1]

    def test_unknown_remote_tombstone_kept(self) -> None:
        local = _doc(_task("1", "a"))
        remote = _doc(_task("1", "a"), _task("9", "gone", is_deleted=True))
        outcome = MergeSession(local, remote).commit(NOW)
        assert outcome.status == MergeStatus.MERGED
        assert _by_id(outcome.document)["9"].is_deleted


class TestDuplicateGuard:
    """重名检查"""

    @pytest.fixture
    def session(self) -> MergeSession:
        local = _doc(_task("1", "A"), _task("3", "B"))
        remote = _doc(_task("1", "A"), _task("2", "B"))
        return MergeSession(local, remote)

    def test_blocks_commit(self, session: MergeSession) -> None:
        outcome = session.commit(NOW)
        assert outcome.status == MergeStatus.CONFLICT
        assert outcome.document is None
        assert len(outcome.conflicts) == 1
        conflict = outcome.conflicts[0]
        assert (conflict.parent_id, conflict.name) == (None, "B")
        assert conflict.task_ids == ["3", "2"]
        assert session.duplicate_conflicts() == outcome.conflicts

    def test_rename_then_commit(self, session: MergeSession) -> None:
        session.resolve_rename("2", "B (remote)")
        outcome = session.commit(NOW)
        assert outcome.status == MergeStatus.MERGED
        names = {t.id: t.name for t in outcome.document.tasks}
        assert names == {"1": "A", "3": "B", "2": "B (remote)"}


class TestResurrection:
    """保留双方版本"""

    @pytest.fixture
    def session(self) -> MergeSession:
        local = _doc(
            _task("x", "Design", TaskStatus.IN_PROGRESS),
            _task("y", "Child", TaskStatus.IN_PROGRESS, parent_id="x"),
        )
        remote = _doc(_task("x", "Design", TaskStatus.DONE))
        return MergeSession(local, remote)

    def test_collision_after_resurrection(self, session: MergeSession) -> None:
        session.keep_both("x")
        outcome = session.commit(NOW)
        assert outcome.status == MergeStatus.CONFLICT
        assert outcome.conflicts[0].name == "Design"

    def test_children_follow_new_id(self, session: MergeSession) -> None:
        session.keep_both("x")
        session.resolve_rename("x", "Design (remote)")
        outcome = session.commit(NOW)
        assert outcome.status == MergeStatus.MERGED
        new_id = outcome.resurrected["x"]
        assert new_id == "a"
        tasks = _by_id(outcome.document)
        assert tasks["x"].name == "Design (remote)"
        assert tasks["x"].status == TaskStatus.DONE
        assert tasks[new_id].name == "Design"
        assert tasks["y"].parent_id == new_id
        assert tasks[new_id].status == TaskStatus.IN_PROGRESS
        assert validate_forest(outcome.document.tasks) == []

    def test_keep_both_cleared_by_action_change(self, session: MergeSession) -> None:
        session.keep_both("x")
        session.resolve_row("x", ResolveAction.KEEP_REMOTE)
        assert session.get_row("x").keep_both is False


class TestDeterminism:
    def test_same_inputs_same_output(self) -> None:
        local = _doc(_task("x", "Design", TaskStatus.IN_PROGRESS), _task("y", "Child", parent_id="x"))
        remote = _doc(_task("x", "Design", TaskStatus.DONE), _task("z", "New"))

        def run() -> str:
            session = MergeSession(local, remote)
            session.keep_both("x")
            session.resolve_rename("x", "Design 2")
            return session.commit(NOW).model_dump_json()

        assert run() == run()

    def test_preview_matches_commit(self) -> None:
        local = _doc(_task("1", "a"))
        remote = _doc(_task("1", "a"), _task("2", "b"))
        session = MergeSession(local, remote)
        assert session.preview(NOW) == session.commit(NOW).document


class TestDuplicateTaskIds:
    """文档内 ID 重复时无法按 ID 对齐，开始合并即被拒绝"""

    def test_remote_duplicate_rejected(self) -> None:
        local = _doc(_task("1", "A"))
        remote = _doc(_task("1", "A"), _task("2", "X"), _task("2", "Y"))
        with pytest.raises(DuplicateTaskIdError) as exc_info:
            MergeSession(local, remote)
        assert exc_info.value.side == "remote"
        assert exc_info.value.task_ids == ["2"]
        assert exc_info.value.code == "DUPLICATE_TASK_ID"

    def test_duplicate_tombstone_rejected(self) -> None:
        local = _doc(_task("1", "A"), _task("3", "old", is_deleted=True), _task("3", "new"))
        with pytest.raises(DuplicateTaskIdError) as exc_info:
            MergeSession(local, _doc(_task("1", "A")))
        assert exc_info.value.side == "local"


class TestCycles:
    """双方各自移动任务，按行选择拼接后产生的环在提交前被打断"""

    @pytest.fixture
    def crossed(self) -> tuple[ProjectDocument, ProjectDocument]:
        # 本地把 A 移到 B 下，远端把 B 移到 A 下
        local = _doc(_task("1", "A", parent_id="2", minute=5), _task("2", "B", minute=1))
        remote = _doc(_task("1", "A", minute=1), _task("2", "B", parent_id="1", minute=5))
        return local, remote

    def _assert_acyclic(self, document: ProjectDocument) -> None:
        assert validate_forest(document.tasks) == []
        tasks = _by_id(document)
        # 环中最先出现在本地文档里的 A 被提升为根
        assert tasks["1"].parent_id is None
        assert tasks["2"].parent_id == "1"

    def test_newest_takes_one_side_each(self, crossed) -> None:
        local, remote = crossed
        session = MergeSession(local, remote, MergePriority.NEWEST)
        assert session.get_row("1").action == ResolveAction.KEEP_LOCAL
        assert session.get_row("2").action == ResolveAction.KEEP_REMOTE
        outcome = session.commit(NOW)
        assert outcome.status == MergeStatus.MERGED
        self._assert_acyclic(outcome.document)

    def test_row_override_creates_cycle(self, crossed) -> None:
        local, remote = crossed
        session = MergeSession(local, remote)
        session.resolve_row("2", ResolveAction.KEEP_REMOTE)
        assert session.duplicate_conflicts(NOW) == []
        outcome = session.commit(NOW)
        assert outcome.status == MergeStatus.MERGED
        self._assert_acyclic(outcome.document)
