"""Task Domain Model

tasks 表的行模型，同时也是事件 payload 中的任务快照。
对外（HTTP 响应与 Pub/Sub 消息）统一使用 camelCase 字段名。
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..config import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    TASK_DESCRIPTION_MAX_LENGTH,
    TASK_TITLE_MAX_LENGTH,
)
from .enums import TaskPriority, TaskStatus

TaskSortField = Literal["title", "dueDate", "createdAt", "priority", "status"]


class Task(BaseModel):
    """Task 数据模型

    id 使用 ULID 格式；due_date 可为空。
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(description="唯一标识，ULID 格式")
    title: str = Field(description="任务标题")
    description: str | None = Field(default=None, description="任务描述")
    # 事件快照中可能出现未知取值，原样保留
    status: TaskStatus | str = Field(
        default=TaskStatus.TODO,
        union_mode="left_to_right",
        description="当前状态",
    )
    priority: TaskPriority | str = Field(
        default=TaskPriority.MEDIUM,
        union_mode="left_to_right",
        description="优先级",
    )
    due_date: datetime | None = Field(default=None, description="截止时间")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")

    def to_wire(self) -> dict[str, Any]:
        """序列化为 camelCase 的 JSON 兼容字典"""
        return self.model_dump(mode="json", by_alias=True)


class TaskListQuery(BaseModel):
    """任务列表查询条件（筛选 + 排序 + 分页）"""

    status: TaskStatus | None = Field(default=None, description="按状态筛选")
    priority: TaskPriority | None = Field(default=None, description="按优先级筛选")
    search: str | None = Field(default=None, description="标题或描述包含的关键字")
    sort_by: TaskSortField = Field(default="createdAt", description="排序字段")
    sort_order: Literal["asc", "desc"] = Field(default="desc", description="排序方向")
    page: int = Field(default=1, ge=1, description="页码，从 1 开始")
    limit: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="每页条数")


class TaskCreate(BaseModel):
    """创建任务的输入"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = Field(min_length=1, max_length=TASK_TITLE_MAX_LENGTH, description="任务标题")
    description: str | None = Field(
        default=None,
        max_length=TASK_DESCRIPTION_MAX_LENGTH,
        description="任务描述",
    )
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="优先级")
    due_date: datetime | None = Field(default=None, description="截止时间，ISO-8601")


class TaskUpdate(BaseModel):
    """更新任务的输入 -- 仅显式传入的字段会被修改

    dueDate 显式传 null 表示清除截止时间。状态变更走 TaskStatusUpdate。
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str | None = Field(
        default=None,
        min_length=1,
        max_length=TASK_TITLE_MAX_LENGTH,
        description="任务标题",
    )
    description: str | None = Field(
        default=None,
        max_length=TASK_DESCRIPTION_MAX_LENGTH,
        description="任务描述",
    )
    priority: TaskPriority | None = Field(default=None, description="优先级")
    due_date: datetime | None = Field(default=None, description="截止时间，ISO-8601")

    @field_validator("title", "priority")
    @classmethod
    def _not_null(cls, v):
        if v is None:
            raise ValueError("must not be null")
        return v


class TaskStatusUpdate(BaseModel):
    """状态变更的输入"""

    status: TaskStatus = Field(description="新状态")
