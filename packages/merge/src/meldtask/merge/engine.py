"""MergeSession -- 两个项目快照的交互式合并

流程：
1. 以未删除任务按 ID 对齐，生成逐行对比（本地独有/远端独有/双方都有）
2. 按全局优先级给双边不一致行设置默认操作，用户可逐行覆盖
3. 提交前做两次重名检查：保留双方版本之前一次，之后一次
4. 保留双方版本时，远端副本沿用原 ID 并承载改名，本地副本换新 ID，
   原本挂在旧 ID 下的子任务跟随本地副本
5. 输出顺序：本地文档顺序，其后为远端独有任务（远端顺序）；
   清理悬空 parent_id、打断环、执行状态传播

同样的输入、同样的选择与同样的 now 总是得到相同的输出。
"""

from collections import defaultdict
from collections.abc import Iterable

import structlog

from meldtask.core.exceptions import EmptyTaskNameError, ForestInvariantError
from meldtask.core.forest import normalize_forest, validate_forest
from meldtask.core.ids import ResurrectionIdAllocator
from meldtask.core.models import ProjectDocument, Task, ViolationKind, minute_of
from meldtask.core.status import recalculate_status

from .exceptions import DuplicateTaskIdError, InvalidMergeActionError, UnknownMergeRowError
from .models import (
    ALLOWED_ACTIONS,
    DuplicateName,
    MergeOutcome,
    MergePriority,
    MergeRow,
    MergeStatus,
    ResolveAction,
    RowKind,
)

log = structlog.get_logger()


def same_content(a: Task, b: Task) -> bool:
    """内容字段是否一致（名称、状态、截止时间、父任务）"""
    return (
        a.name == b.name
        and a.status == b.status
        and a.deadline == b.deadline
        and a.deadline_offset == b.deadline_offset
        and a.parent_id == b.parent_id
    )


def find_duplicate_names(tasks: Iterable[Task]) -> list[DuplicateName]:
    """同一父任务下未删除任务重名的分组，按首次出现顺序返回"""
    slots: dict[tuple[str | None, str], list[str]] = defaultdict(list)
    for task in tasks:
        if not task.is_deleted:
            slots[(task.parent_id, task.name)].append(task.id)
    return [
        DuplicateName(parent_id=parent_id, name=name, task_ids=ids)
        for (parent_id, name), ids in slots.items()
        if len(ids) > 1
    ]


def _duplicate_ids(document: ProjectDocument) -> list[str]:
    return [
        v.task_ids[0]
        for v in validate_forest(document.tasks)
        if v.kind == ViolationKind.DUPLICATE_ID
    ]


def _renamed(task: Task, rename: str | None, now: int) -> Task:
    if rename is None or rename == task.name:
        return task
    return task.model_copy(update={"name": rename, "last_updated": now})


class MergeSession:
    """一次合并会话：持有对比行与用户选择，commit 时生成合并结果"""

    def __init__(
        self,
        local: ProjectDocument,
        remote: ProjectDocument,
        priority: MergePriority = MergePriority.LOCAL,
    ) -> None:
        """
        Raises:
            DuplicateTaskIdError: 任一文档内任务 ID 重复
        """
        for side, document in (("local", local), ("remote", remote)):
            duplicated = _duplicate_ids(document)
            if duplicated:
                raise DuplicateTaskIdError(side, document.id, duplicated)
        self._local = local
        self._remote = remote
        self._priority = priority
        self._use_remote_name = False
        self._rows: dict[str, MergeRow] = {}
        self._build_rows()
        log.info(
            "merge_session_started",
            project_id=local.id,
            remote_project_id=remote.id,
            rows=len(self._rows),
            visible=len(self.visible_rows),
            priority=priority.value,
        )

    # ============================================================
    # 对比行
    # ============================================================

    def _build_rows(self) -> None:
        local_live = {t.id: t for t in self._local.tasks if not t.is_deleted}
        remote_live = {t.id: t for t in self._remote.tasks if not t.is_deleted}
        local_dead = {t.id: t for t in self._local.tasks if t.is_deleted}
        remote_dead = {t.id: t for t in self._remote.tasks if t.is_deleted}

        ordered_ids = [t.id for t in self._local.tasks if not t.is_deleted]
        ordered_ids += [
            t.id for t in self._remote.tasks if not t.is_deleted and t.id not in local_live
        ]

        for task_id in ordered_ids:
            local = local_live.get(task_id)
            remote = remote_live.get(task_id)
            if local is not None and remote is not None:
                kind = RowKind.BOTH
            elif local is not None:
                kind = RowKind.LOCAL_ONLY
            else:
                kind = RowKind.REMOTE_ONLY
            row = MergeRow(
                id=task_id,
                kind=kind,
                local=local,
                remote=remote,
                local_tombstone=local_dead.get(task_id) if local is None else None,
                remote_tombstone=remote_dead.get(task_id) if remote is None else None,
                is_identical=kind == RowKind.BOTH and same_content(local, remote),
                action=ResolveAction.KEEP_LOCAL,
            )
            row.action = self._default_action(row)
            self._rows[task_id] = row

        self._mark_visible()

    def _default_action(self, row: MergeRow) -> ResolveAction:
        if row.kind == RowKind.LOCAL_ONLY:
            # 远端同 ID 墓碑不早于本地修改 -> 删除传播过来
            tomb = row.remote_tombstone
            if tomb is not None and minute_of(tomb.last_updated) >= minute_of(row.local.last_updated):
                return ResolveAction.DELETE
            return ResolveAction.KEEP_LOCAL
        if row.kind == RowKind.REMOTE_ONLY:
            tomb = row.local_tombstone
            if tomb is not None and minute_of(tomb.last_updated) >= minute_of(row.remote.last_updated):
                return ResolveAction.DELETE
            return ResolveAction.ADD_REMOTE
        if row.is_identical:
            return ResolveAction.KEEP_LOCAL
        if self._priority == MergePriority.REMOTE:
            return ResolveAction.KEEP_REMOTE
        if self._priority == MergePriority.NEWEST:
            if minute_of(row.remote.last_updated) > minute_of(row.local.last_updated):
                return ResolveAction.KEEP_REMOTE
        return ResolveAction.KEEP_LOCAL

    def _mark_visible(self) -> None:
        """不一致的行及其全部祖先可见（双方的父子关系都计入）"""
        parents: dict[str, set[str]] = defaultdict(set)
        for row in self._rows.values():
            for task in (row.local, row.remote):
                if task is not None and task.parent_id is not None:
                    parents[row.id].add(task.parent_id)

        visible: set[str] = set()
        stack = [row.id for row in self._rows.values() if not row.is_identical]
        while stack:
            current = stack.pop()
            if current in visible or current not in self._rows:
                continue
            visible.add(current)
            stack.extend(sorted(parents.get(current, ())))

        for row in self._rows.values():
            row.visible = row.id in visible

    @property
    def local(self) -> ProjectDocument:
        return self._local

    @property
    def remote(self) -> ProjectDocument:
        return self._remote

    @property
    def priority(self) -> MergePriority:
        return self._priority

    @property
    def rows(self) -> list[MergeRow]:
        return list(self._rows.values())

    @property
    def visible_rows(self) -> list[MergeRow]:
        return [row for row in self._rows.values() if row.visible]

    def get_row(self, row_id: str) -> MergeRow:
        row = self._rows.get(row_id)
        if row is None:
            raise UnknownMergeRowError(row_id)
        return row

    @property
    def project_name(self) -> str:
        """合并后的项目名"""
        if self._use_remote_name:
            return self._remote.project_name
        return self._local.project_name

    # ============================================================
    # 用户选择
    # ============================================================

    def set_priority(self, priority: MergePriority) -> None:
        """切换全局优先级，重置双边不一致行的操作"""
        self._priority = priority
        for row in self._rows.values():
            if row.kind == RowKind.BOTH and not row.is_identical:
                row.action = self._default_action(row)
                if row.action != ResolveAction.KEEP_LOCAL:
                    row.keep_both = False

    def reject_remote(self) -> None:
        """不合并：保留全部本地任务，忽略远端改动"""
        self._use_remote_name = False
        for row in self._rows.values():
            row.keep_both = False
            row.rename = None
            if row.local is not None:
                row.action = ResolveAction.KEEP_LOCAL
            else:
                row.action = ResolveAction.DELETE

    def resolve_row(self, row_id: str, action: ResolveAction) -> MergeRow:
        """覆盖单行操作

        Raises:
            UnknownMergeRowError: 行不存在
            InvalidMergeActionError: 该行类型不允许此操作
        """
        row = self.get_row(row_id)
        if action not in ALLOWED_ACTIONS[row.kind]:
            raise InvalidMergeActionError(row_id, action.value, row.kind.value)
        row.action = action
        if action != ResolveAction.KEEP_LOCAL:
            row.keep_both = False
        return row

    def keep_both(self, row_id: str, enabled: bool = True) -> MergeRow:
        """保留双方版本（仅限双边不一致且选择保留本地的行）"""
        row = self.get_row(row_id)
        if enabled and (
            row.kind != RowKind.BOTH
            or row.is_identical
            or row.action != ResolveAction.KEEP_LOCAL
        ):
            raise InvalidMergeActionError(row_id, "KEEP_BOTH", row.kind.value)
        row.keep_both = enabled
        return row

    def resolve_rename(self, row_id: str, name: str | None) -> MergeRow:
        """设置提交时的新名称；None 表示取消改名

        保留双方版本时改名作用于远端副本，否则作用于最终采用的任务。
        """
        row = self.get_row(row_id)
        if name is not None and not name.strip():
            raise EmptyTaskNameError()
        row.rename = name
        return row

    def use_remote_project_name(self, enabled: bool = True) -> None:
        """采用远端项目名"""
        self._use_remote_name = enabled

    # ============================================================
    # 结果构建
    # ============================================================

    @staticmethod
    def _chosen(row: MergeRow) -> Task | None:
        if row.action == ResolveAction.DELETE:
            return None
        if row.kind == RowKind.BOTH:
            if row.is_identical or row.action == ResolveAction.KEEP_LOCAL:
                return row.local
            return row.remote
        if row.kind == RowKind.LOCAL_ONLY:
            return row.local
        return row.remote

    def _build(self, now: int, resurrect: bool) -> tuple[list[Task], dict[str, str]]:
        allocator = ResurrectionIdAllocator(
            (t.id for t in self._local.tasks),
            (t.id for t in self._remote.tasks),
        )
        local_ids = {t.id for t in self._local.tasks}
        resurrected: dict[str, str] = {}
        out: list[Task] = []

        for task in self._local.tasks:
            row = self._rows.get(task.id)
            if task.is_deleted:
                # 远端复活了本地墓碑且用户选择加入时，用远端版本替换墓碑
                if row is not None and row.action == ResolveAction.ADD_REMOTE:
                    out.append(_renamed(row.remote, row.rename, now))
                else:
                    out.append(task)
                continue

            if row.action == ResolveAction.DELETE:
                if row.remote_tombstone is not None:
                    out.append(row.remote_tombstone)
                else:
                    out.append(task.model_copy(update={"is_deleted": True, "last_updated": now}))
                continue

            if resurrect and row.keep_both:
                new_id = allocator.allocate()
                resurrected[task.id] = new_id
                out.append(_renamed(row.remote, row.rename, now))
                out.append(row.local.model_copy(update={"id": new_id, "last_updated": now}))
                continue

            out.append(_renamed(self._chosen(row), row.rename, now))

        for task in self._remote.tasks:
            if task.id in local_ids:
                continue
            if task.is_deleted:
                # 保留远端墓碑，使这些 ID 不会被再次分配
                out.append(task)
                continue
            row = self._rows[task.id]
            if row.action == ResolveAction.ADD_REMOTE:
                out.append(_renamed(task, row.rename, now))

        if resurrected:
            # 子任务跟随换了新 ID 的本地副本
            out = [
                t.model_copy(update={"parent_id": resurrected[t.parent_id]})
                if not t.is_deleted and t.parent_id in resurrected and t.id != t.parent_id
                else t
                for t in out
            ]

        out = normalize_forest(out)
        out = recalculate_status(out, now)
        return out, resurrected

    def duplicate_conflicts(self, now: int = 0) -> list[DuplicateName]:
        """重名检查：先检查不保留双方版本时的结果，通过后再检查最终结果"""
        pre, _ = self._build(now, resurrect=False)
        conflicts = find_duplicate_names(pre)
        if conflicts:
            return conflicts
        final, _ = self._build(now, resurrect=True)
        return find_duplicate_names(final)

    def preview(self, now: int) -> ProjectDocument:
        """按当前选择生成合并结果（不做重名检查）"""
        tasks, _ = self._build(now, resurrect=True)
        return self._local.model_copy(
            update={"tasks": tasks, "last_synced": now, "project_name": self.project_name}
        )

    @property
    def is_noop(self) -> bool:
        """按当前选择合并后任务列表与项目名都不变"""
        tasks, _ = self._build(self._local.last_synced, resurrect=True)
        return tasks == list(self._local.tasks) and self.project_name == self._local.project_name

    def commit(self, now: int) -> MergeOutcome:
        """提交合并

        Returns:
            MergeOutcome：MERGED 带新文档；NOTHING_TO_MERGE 带原本地文档；
            CONFLICT 带重名分组，不产生任何部分结果

        Raises:
            ForestInvariantError: 结果仍违反森林不变量（内部错误）
        """
        if self.is_noop:
            log.info("merge_nothing_to_merge", project_id=self._local.id)
            return MergeOutcome(status=MergeStatus.NOTHING_TO_MERGE, document=self._local)

        pre, _ = self._build(now, resurrect=False)
        conflicts = find_duplicate_names(pre)
        if conflicts:
            log.info(
                "merge_blocked_duplicate_names",
                project_id=self._local.id,
                stage="before_resurrection",
                names=[c.name for c in conflicts],
            )
            return MergeOutcome(status=MergeStatus.CONFLICT, conflicts=conflicts)

        tasks, resurrected = self._build(now, resurrect=True)
        conflicts = find_duplicate_names(tasks)
        if conflicts:
            log.info(
                "merge_blocked_duplicate_names",
                project_id=self._local.id,
                stage="after_resurrection",
                names=[c.name for c in conflicts],
            )
            return MergeOutcome(status=MergeStatus.CONFLICT, conflicts=conflicts)

        violations = validate_forest(tasks)
        if violations:
            log.error(
                "merge_result_invalid",
                project_id=self._local.id,
                violations=[str(v) for v in violations],
            )
            raise ForestInvariantError(self._local.id, violations)

        document = self._local.model_copy(
            update={"tasks": tasks, "last_synced": now, "project_name": self.project_name}
        )
        log.info(
            "merge_committed",
            project_id=document.id,
            task_count=len(tasks),
            resurrected=len(resurrected),
        )
        return MergeOutcome(
            status=MergeStatus.MERGED,
            document=document,
            resurrected=resurrected,
        )
