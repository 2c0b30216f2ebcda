"""枚举定义

包含 TaskStatus、TaskPriority、TaskEventType 枚举，
以及 Pub/Sub 的 topic / subscription 名称和事件类型到 topic 的映射。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态"""

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class TaskPriority(StrEnum):
    """Task 优先级"""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TaskEventType(StrEnum):
    """任务事件类型 -- 每次状态变更产生一条"""

    TASK_CREATED = "TASK_CREATED"
    TASK_UPDATED = "TASK_UPDATED"
    TASK_DELETED = "TASK_DELETED"
    TASK_STATUS_CHANGED = "TASK_STATUS_CHANGED"


class PubSubTopic(StrEnum):
    """Pub/Sub topic 名称，每种事件类型一个"""

    TASK_CREATED = "task-created"
    TASK_UPDATED = "task-updated"
    TASK_DELETED = "task-deleted"
    TASK_STATUS_CHANGED = "task-status-changed"


class PubSubSubscription(StrEnum):
    """Pub/Sub subscription 名称"""

    TASK_NOTIFICATION = "task-notification"
    TASK_STATISTICS = "task-statistics"
    # 统计订阅者对其余事件类型的附加订阅
    TASK_STATISTICS_CREATED = "task-statistics-created"
    TASK_STATISTICS_UPDATED = "task-statistics-updated"
    TASK_STATISTICS_DELETED = "task-statistics-deleted"


# 终态 -- 进入该状态时累计 completed_today
DONE_STATUS = TaskStatus.DONE

TOPIC_BY_EVENT_TYPE: dict[TaskEventType, PubSubTopic] = {
    TaskEventType.TASK_CREATED: PubSubTopic.TASK_CREATED,
    TaskEventType.TASK_UPDATED: PubSubTopic.TASK_UPDATED,
    TaskEventType.TASK_DELETED: PubSubTopic.TASK_DELETED,
    TaskEventType.TASK_STATUS_CHANGED: PubSubTopic.TASK_STATUS_CHANGED,
}


def topic_for_event_type(event_type: TaskEventType) -> PubSubTopic:
    """获取事件类型对应的 topic

    Args:
        event_type: 事件类型

    Returns:
        对应的 PubSubTopic
    """
    return TOPIC_BY_EVENT_TYPE[TaskEventType(event_type)]
