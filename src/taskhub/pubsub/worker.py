"""SubscriptionWorker -- 单个 subscription 的 pull 循环 + 并发处理池

一个 pull 循环把消息放入有界 asyncio.Queue，max_workers 个 worker
协程从队列取出 Delivery 并调用消息处理函数。
pull / 传输层错误交给错误处理函数，循环退避后继续，不改变订阅状态。

stop()：
1. 设置停止事件，停止 pull（已拉取但未入队的消息 nack）
2. 已入队但尚未开始处理的消息全部 nack
3. 等待处理中的消息完成 ack / nack，超时后取消 worker
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from datetime import datetime

import structlog

from .client import BrokerClient, PulledMessage
from .subscriptions import SubscriptionHandle

log = structlog.get_logger()


class Delivery:
    """一条待确认的消息

    ack / nack 只生效一次，重复调用被忽略。
    """

    def __init__(
        self,
        client: BrokerClient,
        subscription_name: str,
        message: PulledMessage,
    ) -> None:
        self._client = client
        self._subscription_name = subscription_name
        self._message = message
        self._settled = False

    @property
    def data(self) -> bytes:
        return self._message.data

    @property
    def message_id(self) -> str:
        return self._message.message_id

    @property
    def delivery_attempt(self) -> int:
        return self._message.delivery_attempt

    @property
    def publish_time(self) -> datetime | None:
        return self._message.publish_time

    @property
    def subscription_name(self) -> str:
        return self._subscription_name

    @property
    def settled(self) -> bool:
        return self._settled

    async def ack(self) -> None:
        """确认消息，broker 不再投递"""
        if self._settled:
            return
        self._settled = True
        await self._client.acknowledge(self._subscription_name, [self._message.ack_id])

    async def nack(self) -> None:
        """拒绝消息，broker 稍后重新投递"""
        if self._settled:
            return
        self._settled = True
        await self._client.modify_ack_deadline(
            self._subscription_name,
            [self._message.ack_id],
            0,
        )


MessageHandler = Callable[[Delivery], Awaitable[None]]
ErrorHandler = Callable[[Exception], Awaitable[None] | None]


class SubscriptionWorker:
    """单个 subscription 的消息拉取与处理"""

    def __init__(
        self,
        client: BrokerClient,
        subscription: SubscriptionHandle,
        message_handler: MessageHandler,
        error_handler: ErrorHandler | None = None,
        max_workers: int = 4,
        max_messages: int = 10,
        error_backoff_s: float = 1.0,
        idle_interval_s: float = 0.05,
        stop_timeout_s: float = 10.0,
    ) -> None:
        self._client = client
        self._subscription = subscription
        self._message_handler = message_handler
        self._error_handler = error_handler
        self._max_workers = max_workers
        self._max_messages = max_messages
        self._error_backoff_s = error_backoff_s
        self._idle_interval_s = idle_interval_s
        self._stop_timeout_s = stop_timeout_s

        self._queue: asyncio.Queue[Delivery | None] = asyncio.Queue(
            maxsize=max(max_workers, max_messages)
        )
        self._stop_event = asyncio.Event()
        self._pull_task: asyncio.Task | None = None
        self._worker_tasks: list[asyncio.Task] = []

    @property
    def subscription(self) -> SubscriptionHandle:
        return self._subscription

    @property
    def running(self) -> bool:
        return self._pull_task is not None and not self._stop_event.is_set()

    def start(self) -> None:
        """启动 pull 循环和 worker（重复调用无效果）"""
        if self._pull_task is not None:
            return
        name = self._subscription.name
        self._pull_task = asyncio.create_task(self._pull_loop(), name=f"pull:{name}")
        self._worker_tasks = [
            asyncio.create_task(self._worker_loop(i), name=f"worker:{name}:{i}")
            for i in range(self._max_workers)
        ]
        log.info(
            "subscription_worker_started",
            subscription=name,
            max_workers=self._max_workers,
        )

    async def stop(self) -> None:
        """停止拉取并排空队列（幂等）"""
        if self._pull_task is None or self._stop_event.is_set():
            return
        self._stop_event.set()

        self._pull_task.cancel()
        await asyncio.gather(self._pull_task, return_exceptions=True)

        # 未开始处理的消息交还 broker
        nacked = 0
        while not self._queue.empty():
            delivery = self._queue.get_nowait()
            self._queue.task_done()
            if delivery is not None:
                await self._safe_nack(delivery)
                nacked += 1

        for _ in self._worker_tasks:
            self._queue.put_nowait(None)
        _, pending = await asyncio.wait(self._worker_tasks, timeout=self._stop_timeout_s)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        await log.ainfo(
            "subscription_worker_stopped",
            subscription=self._subscription.name,
            nacked_pending=nacked,
            cancelled_workers=len(pending),
        )

    async def _pull_loop(self) -> None:
        name = self._subscription.name
        while not self._stop_event.is_set():
            try:
                messages = await self._client.pull(name, self._max_messages)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                await log.awarning(
                    "subscription_pull_failed",
                    subscription=name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                await self._report_error(e)
                await self._wait_stop(self._error_backoff_s)
                continue

            if not messages:
                await self._wait_stop(self._idle_interval_s)
                continue

            deliveries = [Delivery(self._client, name, message) for message in messages]
            enqueued = 0
            try:
                for delivery in deliveries:
                    await self._queue.put(delivery)
                    enqueued += 1
            finally:
                # 队列满时被 stop() 取消，未入队的消息立即交还 broker
                for delivery in deliveries[enqueued:]:
                    await self._safe_nack(delivery)

    async def _worker_loop(self, worker_id: int) -> None:
        while True:
            delivery = await self._queue.get()
            try:
                if delivery is None:
                    return
                if self._stop_event.is_set():
                    await self._safe_nack(delivery)
                    continue
                try:
                    await self._message_handler(delivery)
                except Exception as e:
                    await log.aerror(
                        "message_handler_failed",
                        subscription=self._subscription.name,
                        message_id=delivery.message_id,
                        worker_id=worker_id,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    await self._safe_nack(delivery)
            finally:
                self._queue.task_done()

    async def _safe_nack(self, delivery: Delivery) -> None:
        try:
            await delivery.nack()
        except Exception as e:
            await log.awarning(
                "message_nack_failed",
                subscription=self._subscription.name,
                message_id=delivery.message_id,
                error=str(e),
            )

    async def _report_error(self, error: Exception) -> None:
        if self._error_handler is None:
            return
        try:
            result = self._error_handler(error)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            await log.awarning(
                "subscription_error_handler_failed",
                subscription=self._subscription.name,
                error=str(e),
            )

    async def _wait_stop(self, timeout: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
        except TimeoutError:
            pass
