"""google-cloud-pubsub 客户端的内存替身

FakePublisherClient / FakeSubscriberClient 共享一个 FakePubSubBackend，
只实现 BrokerClient 用到的调用。方法会在 asyncio.to_thread 的线程中执行，
backend 内部用 threading.Lock 保护。

行为要点：
- 重复创建 topic / subscription 抛出 AlreadyExists
- publish 扇出到绑定该 topic 的全部 subscription
- nack（modify_ack_deadline 0）的消息回到队首，下次 pull 重新投递
"""

import asyncio
import threading
from collections import deque
from concurrent.futures import Future
from datetime import UTC, datetime
from types import SimpleNamespace

from google.api_core.exceptions import AlreadyExists, NotFound


def _name(path: str) -> str:
    return path.rsplit("/", 1)[-1]


class FakePubSubBackend:
    """内存中的 broker 状态"""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.topics: set[str] = set()
        self.subscriptions: dict[str, str] = {}  # subscription -> topic
        self.subscription_settings: dict[str, dict] = {}
        self.published: list[tuple[str, bytes]] = []
        self._pending: dict[str, deque] = {}
        self._outstanding: dict[str, dict[str, SimpleNamespace]] = {}
        self._message_seq = 0
        self._ack_seq = 0

        self.create_topic_calls = 0
        self.create_subscription_calls = 0
        self.acked: list[str] = []
        self.nacked: list[str] = []

        # 故障注入
        self.stale_listing = False
        self.list_error: Exception | None = None
        self.create_error: Exception | None = None
        self.publish_error: Exception | None = None
        self.pull_error: Exception | None = None

    # ---- 管理 ----

    def create_topic(self, name: str) -> None:
        with self._lock:
            self.create_topic_calls += 1
            if name in self.topics:
                raise AlreadyExists(f"Topic already exists: {name}")
            self.topics.add(name)

    def create_subscription(self, name: str, topic: str, settings: dict) -> None:
        with self._lock:
            self.create_subscription_calls += 1
            if name in self.subscriptions:
                raise AlreadyExists(f"Subscription already exists: {name}")
            if topic not in self.topics:
                raise NotFound(f"Topic not found: {topic}")
            self.subscriptions[name] = topic
            self.subscription_settings[name] = settings
            self._pending[name] = deque()
            self._outstanding[name] = {}

    def list_topics(self) -> list[str]:
        if self.list_error is not None:
            raise self.list_error
        with self._lock:
            return [] if self.stale_listing else sorted(self.topics)

    def list_subscriptions(self) -> list[str]:
        if self.list_error is not None:
            raise self.list_error
        with self._lock:
            return [] if self.stale_listing else sorted(self.subscriptions)

    # ---- 消息 ----

    def publish(self, topic: str, data: bytes) -> str:
        if self.publish_error is not None:
            raise self.publish_error
        with self._lock:
            if topic not in self.topics:
                raise NotFound(f"Topic not found: {topic}")
            self._message_seq += 1
            message_id = str(self._message_seq)
            self.published.append((topic, data))
            for sub, sub_topic in self.subscriptions.items():
                if sub_topic == topic:
                    self._pending[sub].append(
                        SimpleNamespace(
                            data=data,
                            message_id=message_id,
                            publish_time=datetime.now(UTC),
                            attempts=0,
                        )
                    )
            return message_id

    def inject(self, subscription: str, data: bytes, message_id: str | None = None) -> str:
        """直接向 subscription 投递一条消息（模拟重复投递等场景）"""
        with self._lock:
            self._message_seq += 1
            message_id = message_id or str(self._message_seq)
            self._pending[subscription].append(
                SimpleNamespace(
                    data=data,
                    message_id=message_id,
                    publish_time=datetime.now(UTC),
                    attempts=0,
                )
            )
            return message_id

    def pull(self, subscription: str, max_messages: int) -> list[SimpleNamespace]:
        if self.pull_error is not None:
            raise self.pull_error
        with self._lock:
            if subscription not in self.subscriptions:
                raise NotFound(f"Subscription not found: {subscription}")
            pending = self._pending[subscription]
            received = []
            while pending and len(received) < max_messages:
                message = pending.popleft()
                message.attempts += 1
                self._ack_seq += 1
                ack_id = f"{subscription}:{self._ack_seq}"
                self._outstanding[subscription][ack_id] = message
                received.append(
                    SimpleNamespace(
                        ack_id=ack_id,
                        message=SimpleNamespace(
                            data=message.data,
                            message_id=message.message_id,
                            publish_time=message.publish_time,
                        ),
                        delivery_attempt=message.attempts,
                    )
                )
            return received

    def acknowledge(self, subscription: str, ack_ids: list[str]) -> None:
        with self._lock:
            for ack_id in ack_ids:
                message = self._outstanding[subscription].pop(ack_id, None)
                if message is not None:
                    self.acked.append(message.message_id)

    def nack(self, subscription: str, ack_ids: list[str]) -> None:
        with self._lock:
            for ack_id in ack_ids:
                message = self._outstanding[subscription].pop(ack_id, None)
                if message is not None:
                    self.nacked.append(message.message_id)
                    self._pending[subscription].appendleft(message)

    def pending_count(self, subscription: str) -> int:
        with self._lock:
            return len(self._pending[subscription])

    def outstanding_count(self, subscription: str) -> int:
        with self._lock:
            return len(self._outstanding[subscription])


class FakePublisherClient:
    """pubsub_v1.PublisherClient 替身"""

    def __init__(self, backend: FakePubSubBackend) -> None:
        self._backend = backend
        self.stopped = False

    def list_topics(self, request: dict):
        return [
            SimpleNamespace(name=f"{request['project']}/topics/{name}")
            for name in self._backend.list_topics()
        ]

    def create_topic(self, request: dict):
        if self._backend.create_error is not None:
            raise self._backend.create_error
        self._backend.create_topic(_name(request["name"]))
        return SimpleNamespace(name=request["name"])

    def publish(self, topic: str, data: bytes, retry=None, **attrs) -> Future:
        future: Future = Future()
        try:
            future.set_result(self._backend.publish(_name(topic), data))
        except Exception as e:
            future.set_exception(e)
        return future

    def stop(self) -> None:
        self.stopped = True


class FakeSubscriberClient:
    """pubsub_v1.SubscriberClient 替身"""

    def __init__(self, backend: FakePubSubBackend) -> None:
        self._backend = backend
        self.closed = False

    def list_subscriptions(self, request: dict):
        return [
            SimpleNamespace(name=f"{request['project']}/subscriptions/{name}")
            for name in self._backend.list_subscriptions()
        ]

    def create_subscription(self, request: dict):
        if self._backend.create_error is not None:
            raise self._backend.create_error
        self._backend.create_subscription(
            _name(request["name"]),
            _name(request["topic"]),
            {
                "ack_deadline_seconds": request["ack_deadline_seconds"],
                "message_retention_duration": request["message_retention_duration"],
            },
        )
        return SimpleNamespace(name=request["name"])

    def pull(self, request: dict, timeout: float | None = None):
        return SimpleNamespace(
            received_messages=self._backend.pull(
                _name(request["subscription"]),
                request["max_messages"],
            )
        )

    def acknowledge(self, request: dict) -> None:
        self._backend.acknowledge(_name(request["subscription"]), request["ack_ids"])

    def modify_ack_deadline(self, request: dict) -> None:
        if request["ack_deadline_seconds"] == 0:
            self._backend.nack(_name(request["subscription"]), request["ack_ids"])

    def close(self) -> None:
        self.closed = True


async def wait_for(predicate, timeout: float = 5.0, interval: float = 0.02) -> None:
    """轮询等待条件成立（predicate 可为同步或异步函数）"""
    deadline = asyncio.get_running_loop().time() + timeout
    while True:
        result = predicate()
        if asyncio.iscoroutine(result):
            result = await result
        if result:
            return
        if asyncio.get_running_loop().time() >= deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)
