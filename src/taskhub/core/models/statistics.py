"""TaskStatistics Domain Model

task_statistics 表只有一行（单例，id 固定为 "singleton"），
仅由统计订阅者通过增量更新维护。
期望（但不强制）：total_tasks == 各状态计数之和 == 各优先级计数之和。
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..config import STATISTICS_SINGLETON_ID
from .enums import TaskPriority, TaskStatus

# 计数字段（与 task_statistics 表列名一致）
COUNTER_FIELDS: tuple[str, ...] = (
    "total_tasks",
    "todo_tasks",
    "in_progress_tasks",
    "done_tasks",
    "low_priority",
    "medium_priority",
    "high_priority",
    "created_today",
    "completed_today",
)

STATUS_COUNTER_FIELD: dict[str, str] = {
    TaskStatus.TODO: "todo_tasks",
    TaskStatus.IN_PROGRESS: "in_progress_tasks",
    TaskStatus.DONE: "done_tasks",
}

PRIORITY_COUNTER_FIELD: dict[str, str] = {
    TaskPriority.LOW: "low_priority",
    TaskPriority.MEDIUM: "medium_priority",
    TaskPriority.HIGH: "high_priority",
}


class TaskStatistics(BaseModel):
    """统计单例行"""

    id: str = Field(default=STATISTICS_SINGLETON_ID, description="固定主键")
    total_tasks: int = Field(default=0, description="任务总数")
    todo_tasks: int = Field(default=0)
    in_progress_tasks: int = Field(default=0)
    done_tasks: int = Field(default=0)
    low_priority: int = Field(default=0)
    medium_priority: int = Field(default=0)
    high_priority: int = Field(default=0)
    created_today: int = Field(default=0, description="当日创建数")
    completed_today: int = Field(default=0, description="当日完成数")
    last_updated: datetime = Field(description="最后更新时间")

    def to_response(self) -> "TaskStatisticsResponse":
        """整形为对外 API 响应"""
        return TaskStatisticsResponse(
            total_tasks=self.total_tasks,
            by_status=StatusBreakdown(
                todo=self.todo_tasks,
                in_progress=self.in_progress_tasks,
                done=self.done_tasks,
            ),
            by_priority=PriorityBreakdown(
                low=self.low_priority,
                medium=self.medium_priority,
                high=self.high_priority,
            ),
            today=DailyBreakdown(
                created=self.created_today,
                completed=self.completed_today,
            ),
            last_updated=self.last_updated,
        )


class StatisticsDelta(BaseModel):
    """对统计单例行的一组带符号增量"""

    total_tasks: int = 0
    todo_tasks: int = 0
    in_progress_tasks: int = 0
    done_tasks: int = 0
    low_priority: int = 0
    medium_priority: int = 0
    high_priority: int = 0
    created_today: int = 0
    completed_today: int = 0

    def is_empty(self) -> bool:
        return all(getattr(self, name) == 0 for name in COUNTER_FIELDS)

    def nonzero(self) -> dict[str, int]:
        """仅保留非零增量（用于日志）"""
        return {name: getattr(self, name) for name in COUNTER_FIELDS if getattr(self, name)}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StatusBreakdown(_CamelModel):
    todo: int
    in_progress: int
    done: int


class PriorityBreakdown(_CamelModel):
    low: int
    medium: int
    high: int


class DailyBreakdown(_CamelModel):
    created: int
    completed: int


class TaskStatisticsResponse(_CamelModel):
    """统计信息 API 响应 -- 以 camelCase 输出"""

    total_tasks: int
    by_status: StatusBreakdown
    by_priority: PriorityBreakdown
    today: DailyBreakdown
    last_updated: datetime
