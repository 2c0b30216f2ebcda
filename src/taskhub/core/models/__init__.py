"""taskhub Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    DONE_STATUS,
    TOPIC_BY_EVENT_TYPE,
    PubSubSubscription,
    PubSubTopic,
    TaskEventType,
    TaskPriority,
    TaskStatus,
    topic_for_event_type,
)
from .event import EventDecodeError, TaskEvent
from .statistics import (
    COUNTER_FIELDS,
    PRIORITY_COUNTER_FIELD,
    STATUS_COUNTER_FIELD,
    StatisticsDelta,
    TaskStatistics,
    TaskStatisticsResponse,
)
from .task import Task, TaskCreate, TaskListQuery, TaskStatusUpdate, TaskUpdate

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskPriority",
    "TaskEventType",
    "PubSubTopic",
    "PubSubSubscription",
    "DONE_STATUS",
    "TOPIC_BY_EVENT_TYPE",
    "topic_for_event_type",
    # Task
    "Task",
    "TaskListQuery",
    "TaskCreate",
    "TaskUpdate",
    "TaskStatusUpdate",
    # Event
    "TaskEvent",
    "EventDecodeError",
    # Statistics
    "TaskStatistics",
    "TaskStatisticsResponse",
    "StatisticsDelta",
    "COUNTER_FIELDS",
    "STATUS_COUNTER_FIELD",
    "PRIORITY_COUNTER_FIELD",
]
