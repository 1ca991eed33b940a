"""meldtask Merge -- 两个项目快照的确定性合并"""

from .engine import MergeSession, find_duplicate_names, same_content
from .exceptions import (
    DuplicateTaskIdError,
    InvalidMergeActionError,
    MergeError,
    UnknownMergeRowError,
)
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

__all__ = [
    "MergeSession",
    "find_duplicate_names",
    "same_content",
    "MergePriority",
    "ResolveAction",
    "RowKind",
    "MergeRow",
    "MergeStatus",
    "MergeOutcome",
    "DuplicateName",
    "ALLOWED_ACTIONS",
    "MergeError",
    "DuplicateTaskIdError",
    "InvalidMergeActionError",
    "UnknownMergeRowError",
]
