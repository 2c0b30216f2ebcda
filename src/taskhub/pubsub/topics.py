"""TopicRegistry -- topic 幂等初始化与缓存

get_or_create_topic 流程：缓存 -> 存在性检查 -> 创建。
同名 topic 在进程内由 asyncio.Lock 串行化，并发调用只触发一次创建；
跨进程竞争创建时 AlreadyExists 视为成功。
"""

import asyncio
from collections.abc import Iterable

import structlog
from google.api_core.exceptions import AlreadyExists
from taskhub.core.models.enums import PubSubTopic

from .client import BrokerClient
from .exceptions import TopicInitializationError, TopicNotInitializedError

log = structlog.get_logger()


class TopicRegistry:
    """topic 名称 -> topic 路径的进程内缓存"""

    def __init__(self, client: BrokerClient) -> None:
        self._client = client
        self._topics: dict[str, str] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, topic_name: str) -> asyncio.Lock:
        lock = self._locks.get(topic_name)
        if lock is None:
            lock = self._locks[topic_name] = asyncio.Lock()
        return lock

    async def get_or_create_topic(self, topic_name: str) -> str:
        """获取 topic 路径，不存在时创建

        Returns:
            topic 路径（projects/<project>/topics/<name>）

        Raises:
            google.api_core.exceptions.GoogleAPICallError: 创建失败（AlreadyExists 除外）
        """
        if (path := self._topics.get(topic_name)) is not None:
            return path

        async with self._lock_for(topic_name):
            # 等锁期间可能已被其他协程创建
            if (path := self._topics.get(topic_name)) is not None:
                return path

            path = self._client.topic_path(topic_name)
            if await self._client.topic_exists(topic_name):
                await log.ainfo("topic_exists", topic=topic_name)
            else:
                try:
                    path = await self._client.create_topic(topic_name)
                    await log.ainfo("topic_created", topic=topic_name)
                except AlreadyExists:
                    await log.ainfo("topic_created_concurrently", topic=topic_name)

            self._topics[topic_name] = path
            return path

    async def initialize_all(self, topic_names: Iterable[str] | None = None) -> dict[str, str]:
        """并发初始化全部 topic

        Args:
            topic_names: 需要初始化的 topic，默认全部 PubSubTopic

        Raises:
            TopicInitializationError: 任一 topic 初始化失败
        """
        names = [str(name) for name in (topic_names or list(PubSubTopic))]

        async def _init(name: str) -> None:
            try:
                await self.get_or_create_topic(name)
            except Exception as e:
                await log.aerror("topic_initialization_failed", topic=name, error=str(e))
                raise TopicInitializationError(name, e) from e

        await asyncio.gather(*(_init(name) for name in names))
        await log.ainfo("topics_initialized", topics=names)
        return {name: self._topics[name] for name in names}

    def get_topic(self, topic_name: str) -> str:
        """获取已初始化的 topic 路径

        Raises:
            TopicNotInitializedError: topic 不在缓存中
        """
        path = self._topics.get(topic_name)
        if path is None:
            raise TopicNotInitializedError(topic_name)
        return path

    def is_initialized(self, topic_name: str) -> bool:
        return topic_name in self._topics
