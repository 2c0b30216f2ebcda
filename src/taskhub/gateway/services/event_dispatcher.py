"""EventDispatcher -- 任务变更事件的后台发布

任务变更提交后调用 dispatch()，在后台 asyncio.Task 中发布事件；
HTTP 响应不等待发布，也不因发布失败而失败。
shutdown 时 drain() 等待尚未完成的发布。
"""

import asyncio

import structlog
from taskhub.core.models.event import TaskEvent
from taskhub.pubsub.exceptions import PublishError
from taskhub.pubsub.publisher import EventPublisher

log = structlog.get_logger()


class EventDispatcher:
    """fire-and-forget 事件发布调度器

    publisher 为 None（流水线未启用）时只记录日志。
    """

    def __init__(self, publisher: EventPublisher | None) -> None:
        self._publisher = publisher
        self._pending: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self._publisher is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def dispatch(self, event: TaskEvent) -> asyncio.Task | None:
        """调度发布一条事件，立即返回"""
        if self._publisher is None:
            log.debug(
                "event_dispatch_skipped",
                event_type=event.event_type,
                task_id=event.task_id,
            )
            return None

        task = asyncio.create_task(
            self._publish(event),
            name=f"publish:{event.event_type}:{event.task_id}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _publish(self, event: TaskEvent) -> None:
        try:
            await self._publisher.publish(event)
        except PublishError as e:
            # EventPublisher 已记录 event_publish_failed
            await log.awarning(
                "event_dispatch_failed",
                event_type=event.event_type,
                task_id=event.task_id,
                event_id=event.event_id,
                topic=e.topic_name,
            )

    async def drain(self, timeout: float = 10.0) -> int:
        """等待后台发布完成

        Returns:
            超时后仍未完成（被取消）的发布数
        """
        if not self._pending:
            return 0
        pending = list(self._pending)
        _, not_done = await asyncio.wait(pending, timeout=timeout)
        for task in not_done:
            task.cancel()
        if not_done:
            await asyncio.gather(*not_done, return_exceptions=True)
            await log.awarning("event_dispatch_drain_timeout", cancelled=len(not_done))
        return len(not_done)
