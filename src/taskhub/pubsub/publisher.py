"""EventPublisher -- TaskEvent 发布

事件类型决定 topic；序列化为 UTF-8 JSON 后单次发布，不重试。
失败记录日志并以 PublishError 抛出，是否重发由调用方决定。
"""

from typing import Any

import structlog
from taskhub.core.models.enums import TaskEventType, TaskStatus, topic_for_event_type
from taskhub.core.models.event import TaskEvent
from taskhub.core.models.task import Task

from .client import BrokerClient
from .exceptions import PublishError
from .topics import TopicRegistry

log = structlog.get_logger()


class EventPublisher:
    """TaskEvent 发布器"""

    def __init__(self, client: BrokerClient, topics: TopicRegistry) -> None:
        self._client = client
        self._topics = topics

    async def publish(self, event: TaskEvent) -> str:
        """发布单条事件

        Returns:
            broker 分配的 message_id

        Raises:
            PublishError: topic 未初始化、序列化或发布失败
        """
        topic_name = str(topic_for_event_type(event.event_type))
        try:
            self._topics.get_topic(topic_name)
            data = event.to_bytes()
            message_id = await self._client.publish(topic_name, data)
        except Exception as e:
            await log.aerror(
                "event_publish_failed",
                topic=topic_name,
                event_type=event.event_type,
                task_id=event.task_id,
                event_id=event.event_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise PublishError(topic_name, e) from e

        await log.ainfo(
            "event_published",
            topic=topic_name,
            event_type=event.event_type,
            task_id=event.task_id,
            event_id=event.event_id,
            message_id=message_id,
        )
        return message_id

    async def publish_task_created(self, task: Task) -> str:
        return await self.publish(TaskEvent.build(TaskEventType.TASK_CREATED, task))

    async def publish_task_updated(self, task: Task, previous_task: dict[str, Any]) -> str:
        """发布任务更新事件

        Args:
            task: 更新后的任务
            previous_task: 变更前的部分字段（camelCase）
        """
        return await self.publish(
            TaskEvent.build(
                TaskEventType.TASK_UPDATED,
                task,
                metadata={"previousTask": previous_task},
            )
        )

    async def publish_task_deleted(self, task: Task) -> str:
        return await self.publish(TaskEvent.build(TaskEventType.TASK_DELETED, task))

    async def publish_task_status_changed(self, task: Task, previous_status: TaskStatus | str) -> str:
        return await self.publish(
            TaskEvent.build(
                TaskEventType.TASK_STATUS_CHANGED,
                task,
                metadata={"previousStatus": str(previous_status)},
            )
        )
