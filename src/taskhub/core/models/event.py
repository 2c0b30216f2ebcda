"""TaskEvent Domain Model

每次任务变更提交后产生一条事件，创建后不可修改，序列化为 UTF-8 JSON 传输。
wire 格式：{eventId?, eventType, taskId, task, timestamp, metadata?}
event_id 使用 ULID 格式，作为统计消费端的幂等键。
"""

import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from ulid import ULID

from .enums import TaskEventType
from .task import Task


class EventDecodeError(ValueError):
    """消息体无法解析为 TaskEvent"""


class TaskEvent(BaseModel):
    """TaskEvent 数据模型

    metadata 约定：
    - TASK_STATUS_CHANGED: {"previousStatus": "<status>"}
    - TASK_UPDATED: {"previousTask": {<变更前的部分字段>}}
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    event_id: str | None = Field(default=None, description="事件 ID，ULID 格式")
    # 无法识别的事件类型保留原始字符串，由各订阅者按未知类型处理
    event_type: TaskEventType | str = Field(union_mode="left_to_right", description="事件类型")
    task_id: str = Field(description="关联的 Task ID")
    task: Task = Field(description="事件发生时的任务快照")
    timestamp: datetime = Field(description="事件时间戳")
    metadata: dict[str, Any] | None = Field(default=None, description="附加信息")

    @classmethod
    def build(
        cls,
        event_type: TaskEventType,
        task: Task,
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> "TaskEvent":
        """根据任务快照构建新事件（分配新的 event_id）"""
        return cls(
            event_id=str(ULID()),
            event_type=event_type,
            task_id=task.id,
            task=task,
            timestamp=now or datetime.now(UTC),
            metadata=metadata,
        )

    @property
    def is_known_type(self) -> bool:
        return isinstance(self.event_type, TaskEventType)

    @property
    def previous_status(self) -> str | None:
        """STATUS_CHANGED 事件的变更前状态"""
        if not self.metadata:
            return None
        value = self.metadata.get("previousStatus")
        return str(value) if value is not None else None

    @property
    def previous_priority(self) -> str | None:
        """UPDATED 事件中变更前的优先级（未变更时为 None）"""
        if not self.metadata:
            return None
        previous_task = self.metadata.get("previousTask")
        if not isinstance(previous_task, dict):
            return None
        value = previous_task.get("priority")
        return str(value) if value is not None else None

    def to_bytes(self) -> bytes:
        """序列化为 UTF-8 JSON 字节"""
        data = self.model_dump(mode="json", by_alias=True)
        if data.get("metadata") is None:
            data.pop("metadata", None)
        if data.get("eventId") is None:
            data.pop("eventId", None)
        return json.dumps(data, ensure_ascii=False).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes | str) -> "TaskEvent":
        """从 UTF-8 JSON 解析事件

        Raises:
            EventDecodeError: JSON 非法或字段不符合模型
        """
        try:
            return cls.model_validate_json(data)
        except ValidationError as e:
            raise EventDecodeError(f"invalid task event payload: {e.error_count()} error(s)") from e
