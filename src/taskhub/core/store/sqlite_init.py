"""SQLite 数据库初始化

PRAGMA 配置 + 三张表 DDL（tasks / task_statistics / processed_events）+ 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id      TEXT PRIMARY KEY,
    title        TEXT NOT NULL,
    description  TEXT,
    status       TEXT NOT NULL DEFAULT 'TODO',
    priority     TEXT NOT NULL DEFAULT 'MEDIUM',
    due_date     TEXT,
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_priority ON tasks(priority);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at DESC);",
]

# task_statistics 表 DDL（单例行）
_STATISTICS_DDL = """
CREATE TABLE IF NOT EXISTS task_statistics (
    id                 TEXT PRIMARY KEY,
    total_tasks        INTEGER NOT NULL DEFAULT 0,
    todo_tasks         INTEGER NOT NULL DEFAULT 0,
    in_progress_tasks  INTEGER NOT NULL DEFAULT 0,
    done_tasks         INTEGER NOT NULL DEFAULT 0,
    low_priority       INTEGER NOT NULL DEFAULT 0,
    medium_priority    INTEGER NOT NULL DEFAULT 0,
    high_priority      INTEGER NOT NULL DEFAULT 0,
    created_today      INTEGER NOT NULL DEFAULT 0,
    completed_today    INTEGER NOT NULL DEFAULT 0,
    last_updated       TEXT NOT NULL
);
"""

# processed_events 表 DDL（统计增量的幂等账本）
_PROCESSED_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS processed_events (
    event_key     TEXT PRIMARY KEY,
    event_type    TEXT NOT NULL DEFAULT '',
    processed_at  TEXT NOT NULL
);
"""

_PROCESSED_EVENTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_processed_events_at ON processed_events(processed_at);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_TASKS_DDL)
    await conn.execute(_STATISTICS_DDL)
    await conn.execute(_PROCESSED_EVENTS_DDL)

    # 创建索引
    for idx_sql in _TASKS_INDEXES + _PROCESSED_EVENTS_INDEXES:
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
