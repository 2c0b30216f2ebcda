"""taskhub Pub/Sub -- 事件驱动的统计聚合流水线

组件依赖顺序：BrokerClient -> TopicRegistry -> EventPublisher / SubscriptionManager
-> NotificationConsumer / StatisticsConsumer。
create_pubsub_group 在启动时一次性组装全部组件，显式传给使用方。
"""

import structlog
from taskhub.core.store import StoreGroup

from .client import BrokerClient, PulledMessage
from .config import PubSubConfig, load_pubsub_config
from .exceptions import (
    PublishError,
    PubSubError,
    SubscriptionInitializationError,
    TopicInitializationError,
    TopicNotInitializedError,
)
from .publisher import EventPublisher
from .subscribers import (
    ConsumerState,
    NotificationConsumer,
    StatisticsConsumer,
    SubscriberGroup,
    render_notification,
)
from .subscriptions import SubscriptionHandle, SubscriptionManager
from .topics import TopicRegistry
from .worker import Delivery, SubscriptionWorker

log = structlog.get_logger()


class PubSubGroup:
    """Pub/Sub 组件组 -- 共享同一个 BrokerClient"""

    def __init__(
        self,
        config: PubSubConfig,
        client: BrokerClient,
        stores: StoreGroup,
    ) -> None:
        self.config = config
        self.client = client
        self.topics = TopicRegistry(client)
        self.publisher = EventPublisher(client, self.topics)
        self.subscriptions = SubscriptionManager(client, self.topics, config)
        self.subscribers = SubscriberGroup(
            notification=NotificationConsumer(client, self.subscriptions, config),
            statistics=StatisticsConsumer(client, self.subscriptions, stores, config),
        )

    async def start(self) -> None:
        """初始化全部 topic 并启动订阅者

        Raises:
            TopicInitializationError: topic 初始化失败
            SubscriptionInitializationError: subscription 初始化失败
        """
        await self.topics.initialize_all()
        await self.subscribers.initialize_all()

    async def stop(self) -> None:
        """停止订阅者并关闭客户端"""
        await self.subscribers.stop_all()
        await self.client.close()


def create_pubsub_group(
    config: PubSubConfig,
    stores: StoreGroup,
    client: BrokerClient | None = None,
) -> PubSubGroup:
    """创建 Pub/Sub 组件组

    Args:
        config: Pub/Sub 配置
        stores: Store 实例组（统计订阅者使用）
        client: 已创建的 BrokerClient，默认按配置连接

    Returns:
        PubSubGroup 实例
    """
    if client is None:
        client = BrokerClient.connect(config)
    return PubSubGroup(config=config, client=client, stores=stores)


__all__ = [
    "PubSubGroup",
    "create_pubsub_group",
    "PubSubConfig",
    "load_pubsub_config",
    "BrokerClient",
    "PulledMessage",
    "TopicRegistry",
    "EventPublisher",
    "SubscriptionManager",
    "SubscriptionHandle",
    "SubscriptionWorker",
    "Delivery",
    "NotificationConsumer",
    "StatisticsConsumer",
    "SubscriberGroup",
    "ConsumerState",
    "render_notification",
    "PubSubError",
    "TopicNotInitializedError",
    "TopicInitializationError",
    "SubscriptionInitializationError",
    "PublishError",
]
