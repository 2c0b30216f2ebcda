"""写事务封装

所有 Store 共享同一个 aiosqlite 连接，写操作必须持有 StoreGroup 的
write_lock，避免并发协程的语句混入同一事务。
成功时提交，任何异常都回滚并继续抛出。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

import aiosqlite

from ..models.statistics import StatisticsDelta
from ..models.task import Task
from .statistics_store import SqliteStatisticsStore
from .task_store import SqliteTaskStore


@asynccontextmanager
async def write_transaction(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
) -> AsyncIterator[aiosqlite.Connection]:
    """持锁执行一个写事务"""
    async with lock:
        try:
            yield conn
            await conn.commit()
        except BaseException:
            await conn.rollback()
            raise


async def create_task_and_commit(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
    task_store: SqliteTaskStore,
    task: Task,
) -> None:
    """写入新任务并提交"""
    async with write_transaction(conn, lock):
        await task_store.create_task(task)


async def update_task_and_commit(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
    task_store: SqliteTaskStore,
    task: Task,
) -> None:
    """覆盖更新任务并提交"""
    async with write_transaction(conn, lock):
        await task_store.update_task(task)


async def delete_task_and_commit(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
    task_store: SqliteTaskStore,
    task_id: str,
) -> None:
    """删除任务并提交"""
    async with write_transaction(conn, lock):
        await task_store.delete_task(task_id)


async def apply_statistics_delta(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
    statistics_store: SqliteStatisticsStore,
    delta: StatisticsDelta,
    last_updated: datetime,
    event_key: str | None = None,
    event_type: str = "",
) -> bool:
    """在同一事务内原子写入幂等账本和统计增量

    Returns:
        True 表示增量已应用，False 表示重复事件被跳过
    """
    async with write_transaction(conn, lock):
        return await statistics_store.apply_delta(
            delta,
            last_updated,
            event_key=event_key,
            event_type=event_type,
        )
