"""CLI 入口模块 -- python -m meldtask.core <command>

支持的命令：
  encode <文本文件>              规范文本 -> URL 令牌
  decode <令牌>                  URL 令牌 -> 规范文本
  describe <令牌>                逐阶段诊断令牌
  export-text <存储键> [项目ID]  从数据库导出规范文本
  next-project-id                从数据库计数器分配项目 ID
"""

import asyncio
import sys
from pathlib import Path

from .config import get_db_path, load_config

_USAGE = """用法: python -m meldtask.core <command>
命令:
  encode <文本文件>              规范文本 -> URL 令牌
  decode <令牌>                  URL 令牌 -> 规范文本
  describe <令牌>                逐阶段诊断令牌
  export-text <存储键> [项目ID]  从数据库导出规范文本
  next-project-id                从数据库计数器分配项目 ID"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    command, args = sys.argv[1], sys.argv[2:]

    if command == "encode" and len(args) == 1:
        encode_file(args[0])
    elif command == "decode" and len(args) == 1:
        decode(args[0])
    elif command == "describe" and len(args) == 1:
        describe(args[0])
    elif command == "export-text" and len(args) in (1, 2):
        asyncio.run(export_text(args[0], args[1] if len(args) == 2 else None))
    elif command == "next-project-id" and not args:
        asyncio.run(next_project_id())
    else:
        print(f"未知命令或参数不正确: {' '.join(sys.argv[1:])}")
        print(_USAGE)
        sys.exit(1)


def encode_file(path: str) -> None:
    """读取规范文本文件并输出令牌"""
    from meldtask.codec import TextFormParseError, encode_document, load_document

    try:
        document = load_document(Path(path).read_text(encoding="utf-8").strip())
    except TextFormParseError as e:
        print(f"无法解析文本: {e}")
        sys.exit(1)
    print(encode_document(document))


def decode(token: str) -> None:
    """解码令牌并输出规范文本"""
    from meldtask.codec import decode_token, dump_document

    result = decode_token(token)
    if not result.ok:
        print(f"无法恢复数据: {result.failure.reason.value} {result.failure.message}")
        sys.exit(1)
    print(dump_document(result.document))


def describe(token: str) -> None:
    """输出令牌诊断信息"""
    from meldtask.codec import describe_token

    info = describe_token(token)
    for key, value in info.model_dump(exclude_none=True).items():
        print(f"{key}: {value}")


async def export_text(key: str, project_id: str | None) -> None:
    """从数据库导出规范文本（每个项目一行）"""
    from meldtask.codec import dump_document

    from .store import create_store_group

    store_group = await create_store_group(get_db_path())
    try:
        documents = await store_group.project_store.load(key)
    finally:
        await store_group.conn.close()

    if documents is None:
        print(f"存储键不存在: {key}")
        sys.exit(1)
    if project_id is not None:
        documents = [d for d in documents if d.id == project_id]
        if not documents:
            print(f"项目不存在: {project_id}")
            sys.exit(1)
    for document in documents:
        print(dump_document(document))


async def next_project_id() -> None:
    """分配并输出新的项目 ID"""
    from .ids import allocate_project_id
    from .store import create_store_group

    config = load_config()
    store_group = await create_store_group(get_db_path())
    try:
        project_id = await allocate_project_id(
            store_group.project_store,
            config.project_sequence,
        )
    finally:
        await store_group.conn.close()
    print(project_id)


if __name__ == "__main__":
    main()
