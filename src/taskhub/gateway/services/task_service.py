"""TaskService -- 任务增删改查业务逻辑

每个写操作：
1. 在写事务内提交任务变更
2. 构建对应的 TaskEvent
3. 交给 EventDispatcher 在后台发布（不等待、不因发布失败而失败）
"""

from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic.alias_generators import to_camel
from taskhub.core.models import (
    Task,
    TaskCreate,
    TaskEvent,
    TaskEventType,
    TaskListQuery,
    TaskStatus,
    TaskUpdate,
)
from taskhub.core.store import (
    StoreGroup,
    create_task_and_commit,
    delete_task_and_commit,
    update_task_and_commit,
)
from ulid import ULID

from .event_dispatcher import EventDispatcher

log = structlog.get_logger()


class TaskService:
    """任务业务服务"""

    def __init__(self, store_group: StoreGroup, dispatcher: EventDispatcher) -> None:
        self._stores = store_group
        self._dispatcher = dispatcher

    async def create_task(self, payload: TaskCreate) -> Task:
        """创建任务，发布 TASK_CREATED"""
        now = datetime.now(UTC)
        task = Task(
            id=str(ULID()),
            title=payload.title,
            description=payload.description,
            status=TaskStatus.TODO,
            priority=payload.priority,
            due_date=payload.due_date,
            created_at=now,
            updated_at=now,
        )

        await create_task_and_commit(
            self._stores.conn,
            self._stores.write_lock,
            self._stores.task_store,
            task,
        )
        await log.ainfo("task_created", task_id=task.id, priority=task.priority)

        self._dispatcher.dispatch(TaskEvent.build(TaskEventType.TASK_CREATED, task, now=now))
        return task

    async def get_task(self, task_id: str) -> Task | None:
        return await self._stores.task_store.get_task(task_id)

    async def list_tasks(self, query: TaskListQuery) -> tuple[list[Task], int]:
        """按筛选/排序/分页条件查询任务"""
        return await self._stores.task_store.list_tasks(query)

    async def update_task(self, task_id: str, payload: TaskUpdate) -> Task | None:
        """更新任务字段，发布 TASK_UPDATED

        metadata.previousTask 记录本次传入字段的变更前取值（camelCase）。

        Returns:
            更新后的任务；任务不存在时返回 None
        """
        existing = await self._stores.task_store.get_task(task_id)
        if existing is None:
            return None

        changes = payload.model_dump(include=payload.model_fields_set)
        now = datetime.now(UTC)
        updated = existing.model_copy(update={**changes, "updated_at": now})

        await update_task_and_commit(
            self._stores.conn,
            self._stores.write_lock,
            self._stores.task_store,
            updated,
        )

        previous_task: dict[str, Any] = {
            key: value
            for key, value in existing.to_wire().items()
            if key in {to_camel(name) for name in changes}
        }
        await log.ainfo("task_updated", task_id=task_id, fields=sorted(changes))

        self._dispatcher.dispatch(
            TaskEvent.build(
                TaskEventType.TASK_UPDATED,
                updated,
                metadata={"previousTask": previous_task},
                now=now,
            )
        )
        return updated

    async def update_task_status(self, task_id: str, status: TaskStatus) -> Task | None:
        """变更任务状态，发布 TASK_STATUS_CHANGED（metadata.previousStatus）"""
        existing = await self._stores.task_store.get_task(task_id)
        if existing is None:
            return None

        now = datetime.now(UTC)
        updated = existing.model_copy(update={"status": status, "updated_at": now})

        await update_task_and_commit(
            self._stores.conn,
            self._stores.write_lock,
            self._stores.task_store,
            updated,
        )
        await log.ainfo(
            "task_status_changed",
            task_id=task_id,
            from_status=existing.status,
            to_status=status,
        )

        self._dispatcher.dispatch(
            TaskEvent.build(
                TaskEventType.TASK_STATUS_CHANGED,
                updated,
                metadata={"previousStatus": str(existing.status)},
                now=now,
            )
        )
        return updated

    async def delete_task(self, task_id: str) -> Task | None:
        """删除任务，发布 TASK_DELETED（携带删除前快照）

        Returns:
            被删除的任务；任务不存在时返回 None
        """
        existing = await self._stores.task_store.get_task(task_id)
        if existing is None:
            return None

        await delete_task_and_commit(
            self._stores.conn,
            self._stores.write_lock,
            self._stores.task_store,
            task_id,
        )
        await log.ainfo("task_deleted", task_id=task_id)

        self._dispatcher.dispatch(TaskEvent.build(TaskEventType.TASK_DELETED, existing))
        return existing
