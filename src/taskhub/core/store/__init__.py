"""taskhub Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from pathlib import Path

import aiosqlite

from .sqlite_init import init_db, verify_wal_mode
from .statistics_store import SqliteStatisticsStore, StatisticsRowMissingError
from .task_store import SqliteTaskStore
from .transaction import (
    apply_statistics_delta,
    create_task_and_commit,
    delete_task_and_commit,
    update_task_and_commit,
    write_transaction,
)


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接和写锁"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.write_lock = asyncio.Lock()
        self.task_store = SqliteTaskStore(conn)
        self.statistics_store = SqliteStatisticsStore(conn)


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteTaskStore",
    "SqliteStatisticsStore",
    "StatisticsRowMissingError",
    "init_db",
    "verify_wal_mode",
    "write_transaction",
    "create_task_and_commit",
    "update_task_and_commit",
    "delete_task_and_commit",
    "apply_statistics_delta",
]
