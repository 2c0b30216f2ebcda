"""订阅者基类 -- 生命周期状态机 + subscription 绑定

状态：UNINITIALIZED -> SUBSCRIBED -> STOPPED
- initialize() 在 SUBSCRIBED 时为空操作；STOPPED 后允许重新初始化
- stop() 幂等
"""

from enum import StrEnum

import structlog
from taskhub.core.models.event import TaskEvent

from ..client import BrokerClient
from ..config import PubSubConfig
from ..subscriptions import SubscriptionManager
from ..worker import Delivery, SubscriptionWorker

log = structlog.get_logger()


class ConsumerState(StrEnum):
    """订阅者生命周期状态"""

    UNINITIALIZED = "UNINITIALIZED"
    SUBSCRIBED = "SUBSCRIBED"
    STOPPED = "STOPPED"


class BaseConsumer:
    """订阅者基类

    子类提供 bindings()（topic -> subscription 绑定）和 handle_event()。
    单条消息处理：解析 -> handle_event -> ack；任何异常 -> nack。
    """

    name = "consumer"

    def __init__(
        self,
        client: BrokerClient,
        subscriptions: SubscriptionManager,
        config: PubSubConfig | None = None,
    ) -> None:
        self._client = client
        self._subscriptions = subscriptions
        self._config = config or PubSubConfig()
        self._state = ConsumerState.UNINITIALIZED
        self._workers: list[SubscriptionWorker] = []

    @property
    def state(self) -> ConsumerState:
        return self._state

    @property
    def workers(self) -> list[SubscriptionWorker]:
        return list(self._workers)

    def bindings(self) -> list[tuple[str, str]]:
        """返回 (topic_name, subscription_name) 列表"""
        raise NotImplementedError

    async def handle_event(self, event: TaskEvent, delivery: Delivery) -> None:
        """处理单条已解析事件，异常将导致 nack"""
        raise NotImplementedError

    async def before_subscribe(self) -> None:
        """订阅前的准备工作（默认无）"""

    async def initialize(self) -> None:
        """获取 subscription 并启动消息处理

        Raises:
            SubscriptionInitializationError: subscription 创建失败
        """
        if self._state == ConsumerState.SUBSCRIBED:
            return

        await self.before_subscribe()

        workers: list[SubscriptionWorker] = []
        for topic_name, subscription_name in self.bindings():
            handle = await self._subscriptions.get_or_create_subscription(
                str(topic_name),
                str(subscription_name),
            )
            workers.append(
                SubscriptionWorker(
                    self._client,
                    handle,
                    message_handler=self._on_message,
                    error_handler=self._on_error,
                    max_workers=self._config.max_workers,
                    max_messages=self._config.max_messages,
                )
            )

        for worker in workers:
            worker.start()
        self._workers = workers
        self._state = ConsumerState.SUBSCRIBED

        await log.ainfo(
            "consumer_subscribed",
            consumer=self.name,
            subscriptions=[w.subscription.name for w in workers],
        )

    async def stop(self) -> None:
        """停止全部 subscription 的消息处理（幂等）"""
        if self._state != ConsumerState.SUBSCRIBED:
            return
        for worker in self._workers:
            await worker.stop()
        self._workers = []
        self._state = ConsumerState.STOPPED
        await log.ainfo("consumer_stopped", consumer=self.name)

    async def _on_message(self, delivery: Delivery) -> None:
        try:
            event = TaskEvent.from_bytes(delivery.data)
            await self.handle_event(event, delivery)
        except Exception as e:
            await log.aerror(
                "consumer_message_failed",
                consumer=self.name,
                subscription=delivery.subscription_name,
                message_id=delivery.message_id,
                delivery_attempt=delivery.delivery_attempt,
                error_type=type(e).__name__,
                error=str(e),
            )
            await delivery.nack()
            return
        await delivery.ack()

    async def _on_error(self, error: Exception) -> None:
        await log.aerror(
            "consumer_subscription_error",
            consumer=self.name,
            error_type=type(error).__name__,
            error=str(error),
        )
