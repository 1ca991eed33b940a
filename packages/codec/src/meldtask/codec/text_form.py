"""规范文本形式 -- 编码管线第一阶段，也是纯文本导出/导入格式

格式（按位置解析）：

    项目ID,项目名,last_synced,project_start_date,attributes
    [任务ID,任务名,status,parent_id,deadline,deadline_offset,order,last_updated,deleted
    [...
    ]

- 记录以 "[" 开始，整个文档以 "]" 结束
- 字段内的 \\ , [ ] 以反斜杠转义，控制字符写作 \\xHH
- 整数使用 36 进制小写，空字段表示 None（status 为空表示未开始）
- attributes 为紧凑 JSON
"""

import json
from typing import Any

from meldtask.core.ids import to_base36
from meldtask.core.models import ProjectDocument, Task, TaskStatus

from .exceptions import TextFormParseError

_STRUCTURAL = {"\\", ",", "[", "]"}

_DOCUMENT_FIELDS = 5
_TASK_FIELDS = 9


def _escape(value: str) -> str:
    out: list[str] = []
    for ch in value:
        if ch in _STRUCTURAL:
            out.append("\\" + ch)
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\x{ord(ch):02x}")
        else:
            out.append(ch)
    return "".join(out)


def _int_field(value: int | None) -> str:
    return "" if value is None else to_base36(value)


def _dump_task(task: Task) -> str:
    fields = [
        _escape(task.id),
        _escape(task.name),
        "" if task.status == TaskStatus.NOT_STARTED else str(int(task.status)),
        _escape(task.parent_id or ""),
        _int_field(task.deadline),
        _int_field(task.deadline_offset),
        to_base36(task.order),
        to_base36(task.last_updated),
        "1" if task.is_deleted else "",
    ]
    return "[" + ",".join(fields)


def dump_document(document: ProjectDocument) -> str:
    """ProjectDocument -> 规范文本（确定性，无损）"""
    attributes = ""
    if document.attributes is not None:
        attributes = json.dumps(document.attributes, ensure_ascii=False, separators=(",", ":"))
    header = ",".join(
        [
            _escape(document.id),
            _escape(document.project_name),
            to_base36(document.last_synced),
            _int_field(document.project_start_date),
            _escape(attributes),
        ]
    )
    return header + "".join(_dump_task(t) for t in document.tasks) + "]"


def _split_records(text: str) -> list[list[str]]:
    """按未转义的结构字符切分为记录与字段"""
    records: list[list[str]] = [[]]
    buf: list[str] = []
    closed = False
    i = 0
    n = len(text)
    while i < n:
        if closed:
            raise TextFormParseError(f"结束符之后存在多余内容（位置 {i}）")
        ch = text[i]
        if ch == "\\":
            if i + 1 >= n:
                raise TextFormParseError("转义符位于文本末尾")
            esc = text[i + 1]
            if esc in _STRUCTURAL:
                buf.append(esc)
                i += 2
                continue
            if esc == "x":
                digits = text[i + 2 : i + 4]
                if len(digits) != 2 or any(c not in "0123456789abcdef" for c in digits):
                    raise TextFormParseError(f"非法的控制字符转义（位置 {i}）")
                buf.append(chr(int(digits, 16)))
                i += 4
                continue
            raise TextFormParseError(f"未知转义序列 \\{esc}（位置 {i}）")
        if ch == ",":
            records[-1].append("".join(buf))
            buf = []
        elif ch == "[":
            records[-1].append("".join(buf))
            buf = []
            records.append([])
        elif ch == "]":
            records[-1].append("".join(buf))
            buf = []
            closed = True
        else:
            buf.append(ch)
        i += 1
    if not closed:
        raise TextFormParseError("缺少结束符，文本可能被截断")
    return records


def _parse_int(value: str) -> int:
    return int(value, 36)


def _parse_optional_int(value: str) -> int | None:
    return None if value == "" else int(value, 36)


def _load_task(fields: list[str]) -> Task:
    if len(fields) != _TASK_FIELDS:
        raise TextFormParseError(f"任务记录字段数应为 {_TASK_FIELDS}，实际为 {len(fields)}")
    task_id, name, status, parent_id, deadline, offset, order, updated, deleted = fields
    if deleted not in ("", "1"):
        raise TextFormParseError(f"非法的删除标记: {deleted!r}")
    return Task(
        id=task_id,
        name=name,
        status=TaskStatus(int(status)) if status else TaskStatus.NOT_STARTED,
        parent_id=parent_id or None,
        deadline=_parse_optional_int(deadline),
        deadline_offset=_parse_optional_int(offset),
        order=_parse_int(order),
        last_updated=_parse_int(updated),
        is_deleted=deleted == "1",
    )


def load_document(text: str) -> ProjectDocument:
    """规范文本 -> ProjectDocument

    Raises:
        TextFormParseError: 结构、字段数、数值或模型校验不合法
    """
    records = _split_records(text)
    header, task_records = records[0], records[1:]
    if len(header) != _DOCUMENT_FIELDS:
        raise TextFormParseError(f"文档头字段数应为 {_DOCUMENT_FIELDS}，实际为 {len(header)}")
    project_id, project_name, last_synced, start_date, attributes_json = header
    try:
        attributes: dict[str, Any] | None = None
        if attributes_json:
            attributes = json.loads(attributes_json)
            if not isinstance(attributes, dict):
                raise TextFormParseError("attributes 必须为 JSON 对象")
        return ProjectDocument(
            id=project_id,
            project_name=project_name,
            tasks=[_load_task(fields) for fields in task_records],
            last_synced=_parse_int(last_synced),
            project_start_date=_parse_optional_int(start_date),
            attributes=attributes,
        )
    except TextFormParseError:
        raise
    except ValueError as e:
        # int() / json / pydantic 校验错误均为 ValueError 子类
        raise TextFormParseError(f"字段值不合法: {e}") from e
    except RecursionError as e:
        # attributes 嵌套过深
        raise TextFormParseError("attributes 嵌套层级过深") from e
