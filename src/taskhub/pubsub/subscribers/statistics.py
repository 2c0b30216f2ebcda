"""StatisticsConsumer -- 统计单例行的增量维护

initialize() 先确保统计单例行存在（跨日时清零当日计数，清理超过消息保留期的去重记录），再订阅：
- task-statistics -> task-status-changed（始终）
- task-statistics-created / -updated / -deleted（statistics_subscribe_all_kinds 开启时）

单条消息：解析 -> compute_delta -> 单事务应用增量 -> ack。
开启去重时以 event_id（缺失时用 broker message_id）写入 processed_events，
重复投递只 ack 不再累加。
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import structlog
from taskhub.core.models.enums import PubSubSubscription, PubSubTopic
from taskhub.core.models.event import TaskEvent
from taskhub.core.statistics import compute_delta
from taskhub.core.store import StoreGroup
from taskhub.core.store.transaction import apply_statistics_delta, write_transaction

from ..client import BrokerClient
from ..config import PubSubConfig
from ..subscriptions import SubscriptionManager
from ..worker import Delivery
from .base import BaseConsumer

log = structlog.get_logger()

_STATUS_CHANGED_BINDING = (PubSubTopic.TASK_STATUS_CHANGED, PubSubSubscription.TASK_STATISTICS)

_ALL_KINDS_BINDINGS = [
    (PubSubTopic.TASK_CREATED, PubSubSubscription.TASK_STATISTICS_CREATED),
    (PubSubTopic.TASK_UPDATED, PubSubSubscription.TASK_STATISTICS_UPDATED),
    (PubSubTopic.TASK_DELETED, PubSubSubscription.TASK_STATISTICS_DELETED),
]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class StatisticsConsumer(BaseConsumer):
    """统计订阅者"""

    name = "statistics"

    def __init__(
        self,
        client: BrokerClient,
        subscriptions: SubscriptionManager,
        stores: StoreGroup,
        config: PubSubConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(client, subscriptions, config)
        self._stores = stores
        self._clock = clock

    def bindings(self) -> list[tuple[str, str]]:
        if self._config.statistics_subscribe_all_kinds:
            return [_STATUS_CHANGED_BINDING, *_ALL_KINDS_BINDINGS]
        return [_STATUS_CHANGED_BINDING]

    async def before_subscribe(self) -> None:
        await self.ensure_statistics_row()

    async def ensure_statistics_row(self) -> None:
        """确保统计单例行存在；跨日（按统计时区的日历日期）时清零当日计数"""
        store = self._stores.statistics_store
        now = self._clock()
        tz = self._config.tzinfo

        async with write_transaction(self._stores.conn, self._stores.write_lock):
            await self._prune_processed_events(now)

            if await store.count() == 0:
                await store.create_initial(now)
                await log.ainfo("statistics_row_created")
                return

            statistics = await store.get()
            if statistics is None:
                return
            last_updated = statistics.last_updated
            if last_updated.tzinfo is None:
                last_updated = last_updated.replace(tzinfo=UTC)
            if last_updated.astimezone(tz).date() != now.astimezone(tz).date():
                await store.reset_daily_counters(now)
                await log.ainfo(
                    "statistics_daily_counters_reset",
                    last_updated=statistics.last_updated.isoformat(),
                    created_today=statistics.created_today,
                    completed_today=statistics.completed_today,
                )

    async def _prune_processed_events(self, now: datetime) -> None:
        # 超过消息保留期的 key 不会再被重投
        cutoff = now - timedelta(seconds=self._config.retention_seconds)
        pruned = await self._stores.statistics_store.prune_processed_events(cutoff)
        if pruned:
            await log.ainfo(
                "processed_events_pruned",
                pruned=pruned,
                cutoff=cutoff.isoformat(),
            )

    async def handle_event(self, event: TaskEvent, delivery: Delivery) -> None:
        if not event.is_known_type:
            await log.awarning(
                "statistics_unknown_event_ignored",
                event_type=event.event_type,
                task_id=event.task_id,
                message_id=delivery.message_id,
            )
            return

        delta = compute_delta(event)
        event_key = None
        if self._config.statistics_dedup_enabled:
            event_key = event.event_id or f"message:{delivery.message_id}"

        applied = await apply_statistics_delta(
            self._stores.conn,
            self._stores.write_lock,
            self._stores.statistics_store,
            delta,
            self._clock(),
            event_key=event_key,
            event_type=event.event_type,
        )

        if applied:
            await log.ainfo(
                "statistics_updated",
                event_type=event.event_type,
                task_id=event.task_id,
                message_id=delivery.message_id,
                delta=delta.nonzero(),
            )
        else:
            await log.ainfo(
                "statistics_duplicate_event_skipped",
                event_type=event.event_type,
                task_id=event.task_id,
                event_key=event_key,
                message_id=delivery.message_id,
                delivery_attempt=delivery.delivery_attempt,
            )
