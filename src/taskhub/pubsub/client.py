"""BrokerClient -- google-cloud-pubsub 客户端封装

持有 PublisherClient / SubscriberClient 各一个，进程内共享。
客户端调用均为阻塞 gRPC 调用，统一通过 asyncio.to_thread 执行，
避免阻塞事件循环。

设置 emulator_host 时导出 PUBSUB_EMULATOR_HOST，
google-cloud-pubsub 据此建立无凭据的 insecure channel。
"""

import asyncio
import os
from datetime import datetime

import structlog
from google.api_core.exceptions import DeadlineExceeded, GoogleAPICallError
from google.cloud import pubsub_v1
from pydantic import BaseModel, Field

from .config import PubSubConfig

log = structlog.get_logger()


class PulledMessage(BaseModel):
    """一次 pull 返回的单条消息"""

    ack_id: str = Field(description="ack / nack 使用的句柄")
    data: bytes = Field(description="消息体")
    message_id: str = Field(description="broker 分配的消息 ID")
    publish_time: datetime | None = Field(default=None, description="broker 发布时间")
    delivery_attempt: int = Field(default=0, description="投递次数（未配置死信策略时为 0）")


def _trailing_segment(path: str) -> str:
    return path.rsplit("/", 1)[-1]


class BrokerClient:
    """Pub/Sub broker 客户端

    topic / subscription 的存在性检查按资源路径末段名称比较。
    """

    def __init__(
        self,
        config: PubSubConfig,
        publisher: pubsub_v1.PublisherClient,
        subscriber: pubsub_v1.SubscriberClient,
    ) -> None:
        self._config = config
        self._publisher = publisher
        self._subscriber = subscriber
        self._closed = False

    @classmethod
    def connect(cls, config: PubSubConfig) -> "BrokerClient":
        """根据配置创建 broker 客户端

        emulator_host 存在时连接本地 emulator，否则使用环境中的 Google 凭据。
        """
        if config.emulator_host:
            os.environ["PUBSUB_EMULATOR_HOST"] = config.emulator_host
            log.info(
                "pubsub_emulator_enabled",
                emulator_host=config.emulator_host,
                project_id=config.project_id,
            )
        else:
            log.info("pubsub_production_enabled", project_id=config.project_id)

        return cls(
            config,
            publisher=pubsub_v1.PublisherClient(),
            subscriber=pubsub_v1.SubscriberClient(),
        )

    @property
    def project_id(self) -> str:
        return self._config.project_id

    @property
    def project_path(self) -> str:
        return f"projects/{self._config.project_id}"

    def topic_path(self, topic_name: str) -> str:
        return pubsub_v1.PublisherClient.topic_path(self._config.project_id, topic_name)

    def subscription_path(self, subscription_name: str) -> str:
        return pubsub_v1.SubscriberClient.subscription_path(
            self._config.project_id, subscription_name
        )

    # ---- 资源查询 ----

    async def list_topic_names(self) -> list[str]:
        """列出 project 下全部 topic 名称（路径末段）"""

        def _list() -> list[str]:
            topics = self._publisher.list_topics(request={"project": self.project_path})
            return [_trailing_segment(topic.name) for topic in topics]

        return await asyncio.to_thread(_list)

    async def list_subscription_names(self) -> list[str]:
        """列出 project 下全部 subscription 名称（路径末段）"""

        def _list() -> list[str]:
            subscriptions = self._subscriber.list_subscriptions(
                request={"project": self.project_path}
            )
            return [_trailing_segment(sub.name) for sub in subscriptions]

        return await asyncio.to_thread(_list)

    async def topic_exists(self, topic_name: str) -> bool:
        """检查 topic 是否存在，查询失败时记录日志并返回 False"""
        try:
            return topic_name in await self.list_topic_names()
        except GoogleAPICallError as e:
            await log.awarning(
                "topic_exists_check_failed",
                topic=topic_name,
                error=str(e),
            )
            return False

    async def subscription_exists(self, subscription_name: str) -> bool:
        """检查 subscription 是否存在，查询失败时记录日志并返回 False"""
        try:
            return subscription_name in await self.list_subscription_names()
        except GoogleAPICallError as e:
            await log.awarning(
                "subscription_exists_check_failed",
                subscription=subscription_name,
                error=str(e),
            )
            return False

    async def test_connection(self) -> bool:
        """连接探测：执行一次 topic 列表查询，不抛出异常"""
        try:
            await self.list_topic_names()
        except Exception as e:
            await log.awarning(
                "pubsub_connection_test_failed",
                project_id=self._config.project_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return False
        return True

    # ---- 资源创建 ----

    async def create_topic(self, topic_name: str) -> str:
        """创建 topic，返回 topic 路径

        Raises:
            google.api_core.exceptions.AlreadyExists: 已被其他创建者抢先创建
        """
        path = self.topic_path(topic_name)
        await asyncio.to_thread(self._publisher.create_topic, request={"name": path})
        return path

    async def create_subscription(
        self,
        subscription_name: str,
        topic_name: str,
        retention_seconds: int,
        ack_deadline_seconds: int,
    ) -> str:
        """创建绑定到 topic 的 pull subscription，返回 subscription 路径

        Raises:
            google.api_core.exceptions.AlreadyExists: 已被其他创建者抢先创建
        """
        path = self.subscription_path(subscription_name)
        await asyncio.to_thread(
            self._subscriber.create_subscription,
            request={
                "name": path,
                "topic": self.topic_path(topic_name),
                "ack_deadline_seconds": ack_deadline_seconds,
                "message_retention_duration": {"seconds": retention_seconds},
            },
        )
        return path

    # ---- 消息收发 ----

    async def publish(self, topic_name: str, data: bytes) -> str:
        """发布单条消息并等待 broker 确认，返回 message_id

        关闭客户端自带的重试，只尝试一次。
        """

        def _publish() -> str:
            future = self._publisher.publish(self.topic_path(topic_name), data, retry=None)
            return future.result(timeout=self._config.publish_timeout_s)

        return await asyncio.to_thread(_publish)

    async def pull(self, subscription_name: str, max_messages: int | None = None) -> list[PulledMessage]:
        """同步 pull 一批消息；等待超时视为空批次"""

        def _pull() -> list[PulledMessage]:
            try:
                response = self._subscriber.pull(
                    request={
                        "subscription": self.subscription_path(subscription_name),
                        "max_messages": max_messages or self._config.max_messages,
                    },
                    timeout=self._config.pull_timeout_s,
                )
            except DeadlineExceeded:
                return []
            return [
                PulledMessage(
                    ack_id=received.ack_id,
                    data=received.message.data,
                    message_id=received.message.message_id,
                    publish_time=received.message.publish_time,
                    delivery_attempt=received.delivery_attempt,
                )
                for received in response.received_messages
            ]

        return await asyncio.to_thread(_pull)

    async def acknowledge(self, subscription_name: str, ack_ids: list[str]) -> None:
        """确认消息"""
        if not ack_ids:
            return
        await asyncio.to_thread(
            self._subscriber.acknowledge,
            request={
                "subscription": self.subscription_path(subscription_name),
                "ack_ids": ack_ids,
            },
        )

    async def modify_ack_deadline(
        self,
        subscription_name: str,
        ack_ids: list[str],
        ack_deadline_seconds: int,
    ) -> None:
        """修改 ack 截止时间；传 0 即 nack，消息立即可被重新投递"""
        if not ack_ids:
            return
        await asyncio.to_thread(
            self._subscriber.modify_ack_deadline,
            request={
                "subscription": self.subscription_path(subscription_name),
                "ack_ids": ack_ids,
                "ack_deadline_seconds": ack_deadline_seconds,
            },
        )

    async def close(self) -> None:
        """释放 gRPC 连接（幂等）"""
        if self._closed:
            return
        self._closed = True
        await asyncio.to_thread(self._publisher.stop)
        await asyncio.to_thread(self._subscriber.close)
        await log.ainfo("pubsub_client_closed", project_id=self._config.project_id)
