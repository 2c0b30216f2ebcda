"""SubscriptionManager -- subscription 幂等初始化与缓存

与 TopicRegistry 相同的模式：锁 + 缓存 + AlreadyExists 视为成功。
只负责 subscription 资源本身，不持有任何消息处理逻辑。
"""

import asyncio

import structlog
from google.api_core.exceptions import AlreadyExists
from pydantic import BaseModel, ConfigDict, Field

from .client import BrokerClient
from .config import PubSubConfig
from .exceptions import SubscriptionInitializationError
from .topics import TopicRegistry

log = structlog.get_logger()


class SubscriptionHandle(BaseModel):
    """已初始化的 subscription"""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="subscription 名称")
    path: str = Field(description="subscription 完整路径")
    topic_name: str = Field(description="绑定的 topic 名称")


class SubscriptionManager:
    """subscription 名称 -> SubscriptionHandle 的进程内缓存"""

    def __init__(
        self,
        client: BrokerClient,
        topics: TopicRegistry,
        config: PubSubConfig | None = None,
    ) -> None:
        self._client = client
        self._topics = topics
        self._config = config or PubSubConfig()
        self._subscriptions: dict[str, SubscriptionHandle] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, subscription_name: str) -> asyncio.Lock:
        lock = self._locks.get(subscription_name)
        if lock is None:
            lock = self._locks[subscription_name] = asyncio.Lock()
        return lock

    async def get_or_create_subscription(
        self,
        topic_name: str,
        subscription_name: str,
        retention_seconds: int | None = None,
        ack_deadline_seconds: int | None = None,
    ) -> SubscriptionHandle:
        """获取 subscription，不存在时创建（绑定 topic 也会按需创建）

        Args:
            topic_name: 绑定的 topic
            subscription_name: subscription 名称
            retention_seconds: 消息保留时长，默认取配置（3600）
            ack_deadline_seconds: ack 截止时间，默认取配置（30）

        Raises:
            SubscriptionInitializationError: 创建失败（AlreadyExists 除外）
        """
        if (handle := self._subscriptions.get(subscription_name)) is not None:
            return handle

        async with self._lock_for(subscription_name):
            if (handle := self._subscriptions.get(subscription_name)) is not None:
                return handle

            try:
                await self._topics.get_or_create_topic(topic_name)
                path = self._client.subscription_path(subscription_name)
                if await self._client.subscription_exists(subscription_name):
                    await log.ainfo(
                        "subscription_exists",
                        subscription=subscription_name,
                        topic=topic_name,
                    )
                else:
                    try:
                        path = await self._client.create_subscription(
                            subscription_name,
                            topic_name,
                            retention_seconds=retention_seconds or self._config.retention_seconds,
                            ack_deadline_seconds=(
                                ack_deadline_seconds or self._config.ack_deadline_seconds
                            ),
                        )
                        await log.ainfo(
                            "subscription_created",
                            subscription=subscription_name,
                            topic=topic_name,
                        )
                    except AlreadyExists:
                        await log.ainfo(
                            "subscription_created_concurrently",
                            subscription=subscription_name,
                            topic=topic_name,
                        )
            except Exception as e:
                await log.aerror(
                    "subscription_initialization_failed",
                    subscription=subscription_name,
                    topic=topic_name,
                    error=str(e),
                )
                raise SubscriptionInitializationError(subscription_name, e) from e

            handle = SubscriptionHandle(
                name=subscription_name,
                path=path,
                topic_name=topic_name,
            )
            self._subscriptions[subscription_name] = handle
            return handle

    def get_subscription(self, subscription_name: str) -> SubscriptionHandle | None:
        return self._subscriptions.get(subscription_name)
