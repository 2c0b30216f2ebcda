"""Gateway 测试 fixture -- 跳过 lifespan，直接在 app.state 注入依赖"""

from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport
from taskhub.gateway.main import create_app
from taskhub.gateway.services.event_dispatcher import EventDispatcher
from taskhub.pubsub import PubSubGroup, create_pubsub_group


@pytest_asyncio.fixture
async def pubsub_group(pubsub_config, store_group, broker_client) -> PubSubGroup:
    """只初始化 topic 的 Pub/Sub 组件组（不启动订阅者）"""
    group = create_pubsub_group(pubsub_config, store_group, client=broker_client)
    await group.topics.initialize_all()
    return group


@pytest.fixture
def app(store_group, pubsub_group):
    app = create_app()
    app.state.store_group = store_group
    app.state.pubsub_group = pubsub_group
    app.state.event_dispatcher = EventDispatcher(pubsub_group.publisher)
    return app


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    await app.state.event_dispatcher.drain()
