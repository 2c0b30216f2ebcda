"""EventPublisher 测试

测试内容：
1. 事件类型决定 topic
2. metadata 约定（previousStatus / previousTask）
3. topic 未初始化或 broker 失败时抛出 PublishError，只尝试一次
"""

import json

import pytest
import pytest_asyncio
from google.api_core.exceptions import ServiceUnavailable
from taskhub.core.models import TaskStatus
from taskhub.pubsub.exceptions import PublishError
from taskhub.pubsub.publisher import EventPublisher
from taskhub.pubsub.topics import TopicRegistry


@pytest_asyncio.fixture
async def publisher(broker_client) -> EventPublisher:
    topics = TopicRegistry(broker_client)
    await topics.initialize_all()
    return EventPublisher(broker_client, topics)


def _published(backend) -> list[tuple[str, dict]]:
    return [(topic, json.loads(data)) for topic, data in backend.published]


class TestPublish:
    async def test_topic_per_event_type(self, publisher, pubsub_backend, make_task):
        task = make_task()
        await publisher.publish_task_created(task)
        await publisher.publish_task_updated(task, {"title": "old"})
        await publisher.publish_task_status_changed(task, TaskStatus.TODO)
        await publisher.publish_task_deleted(task)

        assert [topic for topic, _ in pubsub_backend.published] == [
            "task-created",
            "task-updated",
            "task-status-changed",
            "task-deleted",
        ]

    async def test_metadata(self, publisher, pubsub_backend, make_task):
        task = make_task(status=TaskStatus.DONE)
        await publisher.publish_task_status_changed(task, TaskStatus.IN_PROGRESS)
        await publisher.publish_task_updated(task, {"priority": "LOW"})

        (_, status_event), (_, update_event) = _published(pubsub_backend)
        assert status_event["eventType"] == "TASK_STATUS_CHANGED"
        assert status_event["metadata"] == {"previousStatus": "IN_PROGRESS"}
        assert status_event["task"]["status"] == "DONE"
        assert update_event["metadata"] == {"previousTask": {"priority": "LOW"}}

    async def test_returns_message_id(self, publisher, make_task):
        message_id = await publisher.publish_task_created(make_task())
        assert message_id


class TestPublishFailure:
    async def test_topic_not_initialized(self, broker_client, pubsub_backend, make_task):
        publisher = EventPublisher(broker_client, TopicRegistry(broker_client))
        with pytest.raises(PublishError) as exc_info:
            await publisher.publish_task_created(make_task())
        assert exc_info.value.topic_name == "task-created"
        assert pubsub_backend.published == []

    async def test_broker_error(self, publisher, pubsub_backend, make_task):
        pubsub_backend.publish_error = ServiceUnavailable("unavailable")
        with pytest.raises(PublishError) as exc_info:
            await publisher.publish_task_deleted(make_task())

        assert exc_info.value.recoverable is True
        assert isinstance(exc_info.value.original_error, ServiceUnavailable)
        assert pubsub_backend.published == []
