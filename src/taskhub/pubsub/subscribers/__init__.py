"""订阅者 -- 通知订阅者 + 统计订阅者"""

import structlog

from .base import BaseConsumer, ConsumerState
from .notification import NotificationConsumer, render_notification
from .statistics import StatisticsConsumer

log = structlog.get_logger()


class SubscriberGroup:
    """订阅者组：按顺序初始化通知订阅者和统计订阅者"""

    def __init__(
        self,
        notification: NotificationConsumer,
        statistics: StatisticsConsumer,
    ) -> None:
        self.notification = notification
        self.statistics = statistics

    async def initialize_all(self) -> None:
        """初始化全部订阅者，失败时记录日志并继续抛出"""
        try:
            await self.notification.initialize()
            await self.statistics.initialize()
        except Exception as e:
            await log.aerror(
                "subscribers_initialization_failed",
                error_type=type(e).__name__,
                error=str(e),
            )
            raise
        await log.ainfo("subscribers_initialized")

    async def stop_all(self) -> None:
        await self.notification.stop()
        await self.statistics.stop()
        await log.ainfo("subscribers_stopped")


__all__ = [
    "BaseConsumer",
    "ConsumerState",
    "NotificationConsumer",
    "StatisticsConsumer",
    "SubscriberGroup",
    "render_notification",
]
