"""统计增量计算与重建

compute_delta 是纯函数：根据单条 TaskEvent 计算对统计单例行的带符号增量。
rebuild_statistics 从 tasks 表重新计算全部计数（当日计数清零），
用于手动修复漂移。
"""

import asyncio
import time
from datetime import UTC, datetime

import aiosqlite
import structlog

from .models.enums import DONE_STATUS, TaskEventType, TaskPriority, TaskStatus
from .models.event import TaskEvent
from .models.statistics import (
    PRIORITY_COUNTER_FIELD,
    STATUS_COUNTER_FIELD,
    StatisticsDelta,
    TaskStatistics,
)
from .store.statistics_store import SqliteStatisticsStore
from .store.task_store import SqliteTaskStore
from .store.transaction import write_transaction

log = structlog.get_logger()


def _bump(deltas: dict[str, int], field: str | None, amount: int) -> None:
    # 未知的 status / priority 取值不贡献增量
    if field is not None:
        deltas[field] = deltas.get(field, 0) + amount


def compute_delta(event: TaskEvent) -> StatisticsDelta:
    """计算单条事件对统计行的增量

    - TASK_CREATED: 总数、当前状态桶、当前优先级桶、created_today 各 +1
    - TASK_DELETED: 总数、当前状态桶、当前优先级桶各 -1，不影响当日计数
    - TASK_STATUS_CHANGED: 原状态桶 -1、新状态桶 +1；新状态为 DONE 时 completed_today +1
    - TASK_UPDATED: 仅当 metadata.previousTask.priority 存在且与当前不同时移动优先级桶
    - 其他（未知）事件类型: 空增量

    Args:
        event: 已解析的任务事件

    Returns:
        StatisticsDelta（可能全为 0）
    """
    deltas: dict[str, int] = {}
    task = event.task
    status_field = STATUS_COUNTER_FIELD.get(task.status)
    priority_field = PRIORITY_COUNTER_FIELD.get(task.priority)

    if event.event_type == TaskEventType.TASK_CREATED:
        _bump(deltas, "total_tasks", 1)
        _bump(deltas, status_field, 1)
        _bump(deltas, priority_field, 1)
        _bump(deltas, "created_today", 1)

    elif event.event_type == TaskEventType.TASK_DELETED:
        _bump(deltas, "total_tasks", -1)
        _bump(deltas, status_field, -1)
        _bump(deltas, priority_field, -1)

    elif event.event_type == TaskEventType.TASK_STATUS_CHANGED:
        previous = event.previous_status
        if previous is not None:
            _bump(deltas, STATUS_COUNTER_FIELD.get(previous), -1)
        _bump(deltas, status_field, 1)
        if task.status == DONE_STATUS:
            _bump(deltas, "completed_today", 1)

    elif event.event_type == TaskEventType.TASK_UPDATED:
        previous = event.previous_priority
        if previous is not None and previous != task.priority:
            _bump(deltas, PRIORITY_COUNTER_FIELD.get(previous), -1)
            _bump(deltas, priority_field, 1)

    return StatisticsDelta(**deltas)


async def rebuild_statistics(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock,
    task_store: SqliteTaskStore,
    statistics_store: SqliteStatisticsStore,
    now: datetime | None = None,
) -> TaskStatistics:
    """从 tasks 表重建统计单例行

    流程：
    1. 统计任务总数、各状态数、各优先级数
    2. 当日计数清零
    3. 在同一事务内覆盖单例行（不存在时创建）

    Returns:
        重建后的统计行
    """
    start_time = time.monotonic()
    now = now or datetime.now(UTC)

    await log.ainfo("statistics_rebuild_started")

    async with write_transaction(conn, lock):
        total = await task_store.count_tasks()
        by_status = await task_store.count_by_status()
        by_priority = await task_store.count_by_priority()

        counts = StatisticsDelta(
            total_tasks=total,
            todo_tasks=by_status[TaskStatus.TODO],
            in_progress_tasks=by_status[TaskStatus.IN_PROGRESS],
            done_tasks=by_status[TaskStatus.DONE],
            low_priority=by_priority[TaskPriority.LOW],
            medium_priority=by_priority[TaskPriority.MEDIUM],
            high_priority=by_priority[TaskPriority.HIGH],
        )
        await statistics_store.overwrite(counts, now)

    statistics = await statistics_store.get()

    elapsed_ms = int((time.monotonic() - start_time) * 1000)
    await log.ainfo(
        "statistics_rebuild_completed",
        total_tasks=total,
        elapsed_ms=elapsed_ms,
    )
    return statistics
