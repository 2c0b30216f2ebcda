"""lifespan 测试 -- 启动组装 / 关闭清理 / Pub/Sub 初始化失败中止启动"""

import pytest
from google.api_core.exceptions import PermissionDenied
from taskhub.core.models.enums import PubSubSubscription, PubSubTopic
from taskhub.gateway.main import create_app
from taskhub.pubsub import BrokerClient, ConsumerState, TopicInitializationError


@pytest.fixture
def lifespan_env(monkeypatch, tmp_path, broker_client):
    """数据库指向临时目录，BrokerClient.connect 返回内存 broker 客户端"""
    monkeypatch.setenv("TASKHUB_DB_PATH", str(tmp_path / "data" / "taskhub.db"))
    for name in ("TASKHUB_PUBSUB_ENABLED", "PUBSUB_PROJECT_ID", "PUBSUB_EMULATOR_HOST"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(BrokerClient, "connect", classmethod(lambda cls, config: broker_client))
    return tmp_path


class TestLifespan:
    async def test_startup_and_shutdown(self, lifespan_env, pubsub_backend, broker_client):
        app = create_app()

        async with app.router.lifespan_context(app):
            group = app.state.pubsub_group
            assert group is not None
            assert app.state.event_dispatcher.enabled
            assert pubsub_backend.topics == {str(t) for t in PubSubTopic}
            assert set(pubsub_backend.subscriptions) == {str(s) for s in PubSubSubscription}
            assert group.subscribers.notification.state == ConsumerState.SUBSCRIBED
            assert group.subscribers.statistics.state == ConsumerState.SUBSCRIBED
            assert await app.state.store_group.statistics_store.count() == 1

        assert group.subscribers.statistics.state == ConsumerState.STOPPED
        assert broker_client._subscriber.closed
        assert (lifespan_env / "data" / "taskhub.db").exists()

    async def test_pubsub_disabled(self, lifespan_env, monkeypatch, pubsub_backend):
        monkeypatch.setenv("TASKHUB_PUBSUB_ENABLED", "false")
        app = create_app()

        async with app.router.lifespan_context(app):
            assert app.state.pubsub_group is None
            assert not app.state.event_dispatcher.enabled

        assert pubsub_backend.topics == set()

    async def test_topic_failure_aborts_startup(self, lifespan_env, pubsub_backend, broker_client):
        pubsub_backend.create_error = PermissionDenied("no permission")
        app = create_app()

        with pytest.raises(TopicInitializationError):
            async with app.router.lifespan_context(app):
                pytest.fail("startup should not complete")

        assert broker_client._publisher.stopped
