"""TaskStore SQLite 实现

tasks 表是任务的权威数据源。
此处仅提供数据库操作，写操作不自动提交事务，需由调用方管理事务。
"""

from datetime import datetime

import aiosqlite

from ..models.enums import TaskPriority, TaskStatus
from ..models.task import Task, TaskListQuery

# 排序字段白名单 -> 列名
_SORT_COLUMNS: dict[str, str] = {
    "title": "title",
    "dueDate": "due_date",
    "createdAt": "created_at",
    "priority": "priority",
    "status": "status",
}


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        await self._conn.execute(
            """
            INSERT INTO tasks (task_id, title, description, status, priority,
                               due_date, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.id,
                task.title,
                task.description,
                str(task.status),
                str(task.priority),
                task.due_date.isoformat() if task.due_date else None,
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
            ),
        )

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks(self, query: TaskListQuery) -> tuple[list[Task], int]:
        """查询任务列表

        Returns:
            (当前页任务列表, 满足筛选条件的总数)
        """
        where, params = self._build_where(query)

        cursor = await self._conn.execute(
            f"SELECT COUNT(*) FROM tasks{where}",
            params,
        )
        row = await cursor.fetchone()
        total = row[0] if row else 0

        column = _SORT_COLUMNS[query.sort_by]
        direction = "ASC" if query.sort_order == "asc" else "DESC"
        offset = (query.page - 1) * query.limit
        cursor = await self._conn.execute(
            f"SELECT * FROM tasks{where} ORDER BY {column} {direction} LIMIT ? OFFSET ?",
            (*params, query.limit, offset),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows], total

    async def update_task(self, task: Task) -> None:
        """整行覆盖更新任务"""
        await self._conn.execute(
            """
            UPDATE tasks
            SET title = ?, description = ?, status = ?, priority = ?,
                due_date = ?, updated_at = ?
            WHERE task_id = ?
            """,
            (
                task.title,
                task.description,
                str(task.status),
                str(task.priority),
                task.due_date.isoformat() if task.due_date else None,
                task.updated_at.isoformat(),
                task.id,
            ),
        )

    async def delete_task(self, task_id: str) -> None:
        """删除任务"""
        await self._conn.execute(
            "DELETE FROM tasks WHERE task_id = ?",
            (task_id,),
        )

    async def count_by_status(self) -> dict[TaskStatus, int]:
        """按状态统计任务数（缺失的状态计为 0）"""
        counts = {status: 0 for status in TaskStatus}
        cursor = await self._conn.execute(
            "SELECT status, COUNT(*) FROM tasks GROUP BY status"
        )
        for status, count in await cursor.fetchall():
            if status in counts:
                counts[TaskStatus(status)] = count
        return counts

    async def count_by_priority(self) -> dict[TaskPriority, int]:
        """按优先级统计任务数（缺失的优先级计为 0）"""
        counts = {priority: 0 for priority in TaskPriority}
        cursor = await self._conn.execute(
            "SELECT priority, COUNT(*) FROM tasks GROUP BY priority"
        )
        for priority, count in await cursor.fetchall():
            if priority in counts:
                counts[TaskPriority(priority)] = count
        return counts

    async def count_tasks(self) -> int:
        """任务总数"""
        cursor = await self._conn.execute("SELECT COUNT(*) FROM tasks")
        row = await cursor.fetchone()
        return row[0] if row else 0

    @staticmethod
    def _build_where(query: TaskListQuery) -> tuple[str, tuple]:
        clauses: list[str] = []
        params: list = []
        if query.status is not None:
            clauses.append("status = ?")
            params.append(query.status.value)
        if query.priority is not None:
            clauses.append("priority = ?")
            params.append(query.priority.value)
        if query.search:
            clauses.append("(title LIKE ? OR description LIKE ?)")
            pattern = f"%{query.search}%"
            params.extend([pattern, pattern])
        if not clauses:
            return "", ()
        return " WHERE " + " AND ".join(clauses), tuple(params)

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            id=row[0],
            title=row[1],
            description=row[2],
            status=row[3],
            priority=row[4],
            due_date=datetime.fromisoformat(row[5]) if row[5] else None,
            created_at=datetime.fromisoformat(row[6]),
            updated_at=datetime.fromisoformat(row[7]),
        )
