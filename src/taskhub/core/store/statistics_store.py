"""StatisticsStore SQLite 实现

task_statistics 表只有单例行，processed_events 表是统计增量的幂等账本。
此处仅提供数据库操作，不自动提交事务，需由调用方管理事务
（见 transaction.py）。
"""

from datetime import UTC, datetime

import aiosqlite

from ..config import STATISTICS_SINGLETON_ID
from ..models.statistics import COUNTER_FIELDS, StatisticsDelta, TaskStatistics

# 单条 UPDATE 同时应用全部计数增量
_APPLY_DELTA_SQL = (
    "UPDATE task_statistics SET "
    + ", ".join(f"{name} = {name} + ?" for name in COUNTER_FIELDS)
    + ", last_updated = ? WHERE id = ?"
)

_OVERWRITE_SQL = (
    "UPDATE task_statistics SET "
    + ", ".join(f"{name} = ?" for name in COUNTER_FIELDS)
    + ", last_updated = ? WHERE id = ?"
)


class StatisticsRowMissingError(LookupError):
    """统计单例行不存在，增量无处应用"""

    def __init__(self, singleton_id: str) -> None:
        super().__init__(f"statistics row {singleton_id!r} does not exist")
        self.singleton_id = singleton_id


def _utc_iso(value: datetime) -> str:
    # processed_at 统一存 UTC，保证按字符串比较即按时间比较
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


class SqliteStatisticsStore:
    """StatisticsStore 的 SQLite 实现"""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        singleton_id: str = STATISTICS_SINGLETON_ID,
    ) -> None:
        self._conn = conn
        self._singleton_id = singleton_id

    async def count(self) -> int:
        """统计行数（正常情况下为 0 或 1）"""
        cursor = await self._conn.execute("SELECT COUNT(*) FROM task_statistics")
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def get(self) -> TaskStatistics | None:
        """读取单例行，不存在时返回 None"""
        cursor = await self._conn.execute(
            "SELECT * FROM task_statistics WHERE id = ?",
            (self._singleton_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_statistics(row)

    async def create_initial(self, now: datetime) -> None:
        """插入全零单例行（已存在时忽略）"""
        await self._conn.execute(
            "INSERT OR IGNORE INTO task_statistics (id, last_updated) VALUES (?, ?)",
            (self._singleton_id, now.isoformat()),
        )

    async def reset_daily_counters(self, now: datetime) -> None:
        """清零 created_today / completed_today"""
        await self._conn.execute(
            """
            UPDATE task_statistics
            SET created_today = 0, completed_today = 0, last_updated = ?
            WHERE id = ?
            """,
            (now.isoformat(), self._singleton_id),
        )

    async def overwrite(self, counts: StatisticsDelta, now: datetime) -> None:
        """用绝对值覆盖全部计数（不存在单例行时先创建）"""
        await self.create_initial(now)
        await self._conn.execute(
            _OVERWRITE_SQL,
            (
                *(getattr(counts, name) for name in COUNTER_FIELDS),
                now.isoformat(),
                self._singleton_id,
            ),
        )

    async def apply_delta(
        self,
        delta: StatisticsDelta,
        last_updated: datetime,
        event_key: str | None = None,
        event_type: str = "",
    ) -> bool:
        """应用一组带符号增量

        传入 event_key 时先写入 processed_events 账本；
        key 已存在说明是重复投递，跳过增量。

        Returns:
            True 表示增量已应用，False 表示重复事件被跳过

        Raises:
            StatisticsRowMissingError: 单例行不存在（调用方事务回滚，账本记录不落盘）
        """
        if event_key is not None:
            cursor = await self._conn.execute(
                """
                INSERT OR IGNORE INTO processed_events (event_key, event_type, processed_at)
                VALUES (?, ?, ?)
                """,
                (event_key, event_type, _utc_iso(last_updated)),
            )
            if cursor.rowcount == 0:
                return False

        cursor = await self._conn.execute(
            _APPLY_DELTA_SQL,
            (
                *(getattr(delta, name) for name in COUNTER_FIELDS),
                last_updated.isoformat(),
                self._singleton_id,
            ),
        )
        if cursor.rowcount == 0:
            raise StatisticsRowMissingError(self._singleton_id)
        return True

    async def prune_processed_events(self, older_than: datetime) -> int:
        """删除 processed_at 早于 older_than 的账本记录

        Returns:
            删除的记录数
        """
        cursor = await self._conn.execute(
            "DELETE FROM processed_events WHERE processed_at < ?",
            (_utc_iso(older_than),),
        )
        return cursor.rowcount

    async def is_processed(self, event_key: str) -> bool:
        """查询事件是否已记入账本"""
        cursor = await self._conn.execute(
            "SELECT 1 FROM processed_events WHERE event_key = ?",
            (event_key,),
        )
        return await cursor.fetchone() is not None

    @staticmethod
    def _row_to_statistics(row: aiosqlite.Row) -> TaskStatistics:
        """将数据库行转换为 TaskStatistics 模型"""
        return TaskStatistics(
            id=row[0],
            total_tasks=row[1],
            todo_tasks=row[2],
            in_progress_tasks=row[3],
            done_tasks=row[4],
            low_priority=row[5],
            medium_priority=row[6],
            high_priority=row[7],
            created_today=row[8],
            completed_today=row[9],
            last_updated=datetime.fromisoformat(row[10]),
        )
