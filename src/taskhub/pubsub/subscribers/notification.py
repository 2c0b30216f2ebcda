"""NotificationConsumer -- 任务创建通知

订阅 task-notification（绑定 task-created），为每条事件渲染一行通知文本，
交给通知输出（默认写 structlog 日志 task_notification）。
"""

from collections.abc import Awaitable, Callable

import structlog
from taskhub.core.models.enums import PubSubSubscription, PubSubTopic, TaskEventType
from taskhub.core.models.event import TaskEvent

from ..client import BrokerClient
from ..config import PubSubConfig
from ..subscriptions import SubscriptionManager
from ..worker import Delivery
from .base import BaseConsumer

log = structlog.get_logger()

NotificationSink = Callable[[str, TaskEvent], Awaitable[None]]


def render_notification(event: TaskEvent) -> str:
    """根据事件类型渲染通知文本"""
    title = event.task.title
    if event.event_type == TaskEventType.TASK_CREATED:
        return f'New task "{title}" was created'
    if event.event_type == TaskEventType.TASK_UPDATED:
        return f'Task "{title}" was updated'
    if event.event_type == TaskEventType.TASK_DELETED:
        return f'Task "{title}" was deleted'
    if event.event_type == TaskEventType.TASK_STATUS_CHANGED:
        previous = event.previous_status or "unknown"
        return f'Task "{title}" status changed from {previous} to {event.task.status}'
    return f"Received task event: {event.event_type}"


async def log_notification_sink(text: str, event: TaskEvent) -> None:
    """默认通知输出：写日志"""
    await log.ainfo(
        "task_notification",
        notification=text,
        event_type=event.event_type,
        task_id=event.task_id,
    )


class NotificationConsumer(BaseConsumer):
    """通知订阅者"""

    name = "notification"

    def __init__(
        self,
        client: BrokerClient,
        subscriptions: SubscriptionManager,
        config: PubSubConfig | None = None,
        sink: NotificationSink | None = None,
    ) -> None:
        super().__init__(client, subscriptions, config)
        self._sink = sink or log_notification_sink

    def bindings(self) -> list[tuple[str, str]]:
        return [(PubSubTopic.TASK_CREATED, PubSubSubscription.TASK_NOTIFICATION)]

    async def handle_event(self, event: TaskEvent, delivery: Delivery) -> None:
        await self._sink(render_notification(event), event)
