"""全局 pytest 配置 -- 临时 SQLite 数据库 + 内存 Pub/Sub fixture"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio
from pubsub_fakes import FakePublisherClient, FakePubSubBackend, FakeSubscriberClient
from taskhub.core.models import Task, TaskPriority, TaskStatus
from taskhub.core.store import StoreGroup, create_store_group
from taskhub.pubsub.client import BrokerClient
from taskhub.pubsub.config import PubSubConfig
from ulid import ULID


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "test.db"


@pytest_asyncio.fixture
async def db_conn(tmp_db_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """提供已初始化的临时 SQLite 数据库连接"""
    from taskhub.core.store.sqlite_init import init_db

    conn = await aiosqlite.connect(str(tmp_db_path))
    await init_db(conn)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def store_group(tmp_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """提供共享连接的 Store 实例组"""
    group = await create_store_group(str(tmp_path / "sqlite" / "taskhub.db"))
    yield group
    await group.conn.close()


@pytest.fixture
def pubsub_config() -> PubSubConfig:
    """测试用 Pub/Sub 配置"""
    return PubSubConfig(project_id="test-project", max_workers=2, pull_timeout_s=0.1)


@pytest.fixture
def pubsub_backend() -> FakePubSubBackend:
    """内存 broker"""
    return FakePubSubBackend()


@pytest.fixture
def broker_client(pubsub_config: PubSubConfig, pubsub_backend: FakePubSubBackend) -> BrokerClient:
    """连接内存 broker 的 BrokerClient"""
    return BrokerClient(
        pubsub_config,
        publisher=FakePublisherClient(pubsub_backend),
        subscriber=FakeSubscriberClient(pubsub_backend),
    )


@pytest.fixture
def make_task():
    """任务工厂"""

    def _make(
        title: str = "测试任务",
        status: TaskStatus = TaskStatus.TODO,
        priority: TaskPriority = TaskPriority.MEDIUM,
        **kwargs,
    ) -> Task:
        now = kwargs.pop("now", datetime.now(UTC))
        return Task(
            id=kwargs.pop("id", str(ULID())),
            title=title,
            status=status,
            priority=priority,
            created_at=now,
            updated_at=now,
            **kwargs,
        )

    return _make
