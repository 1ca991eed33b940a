"""SQLite 数据库初始化

PRAGMA 配置 + 三张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# store_keys 表 DDL：记录保存过的存储键（空列表与从未保存需要区分）
_STORE_KEYS_DDL = """
CREATE TABLE IF NOT EXISTS store_keys (
    store_key   TEXT PRIMARY KEY,
    saved_at    INTEGER NOT NULL DEFAULT 0
);
"""

# projects 表 DDL：payload 为 ProjectDocument 的 JSON，按存储键分组
_PROJECTS_DDL = """
CREATE TABLE IF NOT EXISTS projects (
    store_key    TEXT NOT NULL,
    project_id   TEXT NOT NULL,
    position     INTEGER NOT NULL DEFAULT 0,
    project_name TEXT NOT NULL DEFAULT '',
    last_synced  INTEGER NOT NULL DEFAULT 0,
    is_public    INTEGER NOT NULL DEFAULT 0,
    public_role  TEXT,
    payload      TEXT NOT NULL DEFAULT '{}',

    PRIMARY KEY (store_key, project_id),
    FOREIGN KEY (store_key) REFERENCES store_keys(store_key)
);
"""

_PROJECTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_projects_key_position ON projects(store_key, position);",
    "CREATE INDEX IF NOT EXISTS idx_projects_name ON projects(project_name);",
]

# sequences 表 DDL：原子递增计数器
_SEQUENCES_DDL = """
CREATE TABLE IF NOT EXISTS sequences (
    name   TEXT PRIMARY KEY,
    value  INTEGER NOT NULL DEFAULT 0
);
"""


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_STORE_KEYS_DDL)
    await conn.execute(_PROJECTS_DDL)
    await conn.execute(_SEQUENCES_DDL)

    # 创建索引
    for idx_sql in _PROJECTS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
