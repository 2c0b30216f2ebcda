"""Domain Models 单元测试

测试内容：
1. 枚举值与事件类型 -> topic 映射
2. Task / TaskEvent 的 camelCase wire 格式
3. 输入模型校验（长度限制、null 处理）
4. 统计响应整形
"""

import json
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError
from taskhub.core.models import (
    EventDecodeError,
    PubSubTopic,
    StatisticsDelta,
    TaskCreate,
    TaskEvent,
    TaskEventType,
    TaskPriority,
    TaskStatistics,
    TaskStatus,
    TaskUpdate,
    topic_for_event_type,
)


class TestEnums:
    """枚举测试"""

    def test_status_and_priority_values(self):
        assert TaskStatus.IN_PROGRESS == "IN_PROGRESS"
        assert TaskPriority("HIGH") == TaskPriority.HIGH

    def test_topic_for_each_event_type(self):
        """每种事件类型各有一个 topic"""
        assert topic_for_event_type(TaskEventType.TASK_CREATED) == PubSubTopic.TASK_CREATED
        assert topic_for_event_type(TaskEventType.TASK_UPDATED) == "task-updated"
        assert topic_for_event_type(TaskEventType.TASK_DELETED) == "task-deleted"
        assert topic_for_event_type("TASK_STATUS_CHANGED") == "task-status-changed"


class TestTaskWire:
    """Task 序列化测试"""

    def test_to_wire_uses_camel_case(self, make_task):
        task = make_task(title="Write report", due_date=datetime(2025, 5, 1, tzinfo=UTC))
        wire = task.to_wire()
        assert set(wire) == {
            "id",
            "title",
            "description",
            "status",
            "priority",
            "dueDate",
            "createdAt",
            "updatedAt",
        }
        assert wire["status"] == "TODO"
        assert wire["dueDate"].startswith("2025-05-01T00:00:00")


class TestTaskEvent:
    """TaskEvent 测试"""

    def test_build_assigns_event_id(self, make_task):
        task = make_task()
        first = TaskEvent.build(TaskEventType.TASK_CREATED, task)
        second = TaskEvent.build(TaskEventType.TASK_CREATED, task)
        assert first.event_id and second.event_id
        assert first.event_id != second.event_id
        assert first.task_id == task.id

    def test_event_is_immutable(self, make_task):
        event = TaskEvent.build(TaskEventType.TASK_CREATED, make_task())
        with pytest.raises(ValidationError):
            event.task_id = "other"

    def test_to_bytes_wire_format(self, make_task):
        """UTF-8 JSON，无 metadata 时省略该字段"""
        task = make_task(title="周报")
        event = TaskEvent.build(TaskEventType.TASK_CREATED, task)
        payload = json.loads(event.to_bytes().decode("utf-8"))

        assert payload["eventType"] == "TASK_CREATED"
        assert payload["taskId"] == task.id
        assert payload["task"]["title"] == "周报"
        assert "timestamp" in payload
        assert "metadata" not in payload
        assert "周报".encode() in event.to_bytes()

    def test_from_bytes_accepts_event_without_id(self, make_task):
        """兼容不带 eventId 的消息"""
        task = make_task()
        raw = json.dumps(
            {
                "eventType": "TASK_STATUS_CHANGED",
                "taskId": task.id,
                "task": task.to_wire(),
                "timestamp": "2025-01-01T00:00:00Z",
                "metadata": {"previousStatus": "TODO"},
            }
        ).encode()
        event = TaskEvent.from_bytes(raw)
        assert event.event_id is None
        assert event.previous_status == "TODO"

    def test_from_bytes_keeps_unknown_values(self, make_task):
        """未知事件类型 / 状态 / 优先级原样保留，已知取值解析为枚举"""
        wire = json.loads(TaskEvent.build(TaskEventType.TASK_CREATED, make_task()).to_bytes())
        known = TaskEvent.from_bytes(json.dumps(wire))
        assert known.event_type is TaskEventType.TASK_CREATED
        assert known.task.status is TaskStatus.TODO
        assert known.is_known_type

        wire["eventType"] = "TASK_ARCHIVED"
        wire["task"]["status"] = "BLOCKED"
        wire["task"]["priority"] = "URGENT"
        event = TaskEvent.from_bytes(json.dumps(wire))
        assert event.event_type == "TASK_ARCHIVED"
        assert not event.is_known_type
        assert event.task.status == "BLOCKED"
        assert event.task.priority == "URGENT"

    def test_from_bytes_rejects_garbage(self):
        with pytest.raises(EventDecodeError):
            TaskEvent.from_bytes(b"not json")
        with pytest.raises(EventDecodeError):
            TaskEvent.from_bytes(b'{"eventType": "TASK_CREATED"}')

    def test_previous_priority(self, make_task):
        task = make_task(priority=TaskPriority.HIGH)
        event = TaskEvent.build(
            TaskEventType.TASK_UPDATED,
            task,
            metadata={"previousTask": {"priority": "LOW", "title": "old"}},
        )
        assert event.previous_priority == "LOW"

        plain = TaskEvent.build(
            TaskEventType.TASK_UPDATED,
            task,
            metadata={"previousTask": {"title": "old"}},
        )
        assert plain.previous_priority is None
        assert plain.previous_status is None


class TestInputModels:
    """输入模型校验测试"""

    def test_create_defaults(self):
        payload = TaskCreate.model_validate({"title": "A"})
        assert payload.priority == TaskPriority.MEDIUM
        assert payload.description is None

    @pytest.mark.parametrize(
        "body",
        [
            {"title": ""},
            {"title": "x" * 101},
            {"title": "ok", "description": "d" * 501},
            {"title": "ok", "priority": "URGENT"},
            {"title": "ok", "dueDate": "tomorrow"},
        ],
    )
    def test_create_rejects_invalid(self, body):
        with pytest.raises(ValidationError):
            TaskCreate.model_validate(body)

    def test_update_tracks_explicit_fields(self):
        payload = TaskUpdate.model_validate({"priority": "HIGH", "dueDate": None})
        assert payload.model_fields_set == {"priority", "due_date"}

    def test_update_rejects_null_title(self):
        with pytest.raises(ValidationError):
            TaskUpdate.model_validate({"title": None})


class TestStatisticsModels:
    """统计模型测试"""

    def test_response_shape(self):
        statistics = TaskStatistics(
            total_tasks=3,
            todo_tasks=1,
            in_progress_tasks=1,
            done_tasks=1,
            high_priority=3,
            created_today=2,
            completed_today=1,
            last_updated=datetime(2025, 1, 1, tzinfo=UTC),
        )
        data = statistics.to_response().model_dump(mode="json", by_alias=True)
        assert data["totalTasks"] == 3
        assert data["byStatus"] == {"todo": 1, "inProgress": 1, "done": 1}
        assert data["byPriority"] == {"low": 0, "medium": 0, "high": 3}
        assert data["today"] == {"created": 2, "completed": 1}
        assert data["lastUpdated"].startswith("2025-01-01T00:00:00")

    def test_delta_helpers(self):
        assert StatisticsDelta().is_empty()
        delta = StatisticsDelta(total_tasks=1, todo_tasks=-1)
        assert not delta.is_empty()
        assert delta.nonzero() == {"total_tasks": 1, "todo_tasks": -1}
