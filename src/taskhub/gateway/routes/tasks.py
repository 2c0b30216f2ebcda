"""任务路由

POST   /api/tasks                 创建任务（201）
GET    /api/tasks                 任务列表（筛选 + 排序 + 分页）
GET    /api/tasks/{task_id}       任务详情
PUT    /api/tasks/{task_id}       更新任务字段
PATCH  /api/tasks/{task_id}/status 变更任务状态
DELETE /api/tasks/{task_id}       删除任务

响应统一为 {"status": "success", "data": ..., "message": ...}。
"""

import math
from typing import Literal

from fastapi import APIRouter, Depends, Query
from taskhub.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from taskhub.core.models import (
    TaskCreate,
    TaskListQuery,
    TaskPriority,
    TaskStatus,
    TaskStatusUpdate,
    TaskUpdate,
)
from taskhub.core.models.task import TaskSortField

from ..deps import get_task_service
from ..errors import NotFoundError
from ..services.task_service import TaskService

router = APIRouter()


def _not_found(task_id: str) -> NotFoundError:
    return NotFoundError(f"Task {task_id} not found")


@router.post("/api/tasks", status_code=201)
async def create_task(
    payload: TaskCreate,
    service: TaskService = Depends(get_task_service),
):
    """创建任务"""
    task = await service.create_task(payload)
    return {
        "status": "success",
        "data": {"task": task.to_wire()},
        "message": "Task created",
    }


@router.get("/api/tasks")
async def list_tasks(
    status: TaskStatus | None = Query(default=None, description="按状态筛选"),
    priority: TaskPriority | None = Query(default=None, description="按优先级筛选"),
    search: str | None = Query(default=None, description="标题或描述关键字"),
    sort_by: TaskSortField = Query(default="createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    service: TaskService = Depends(get_task_service),
):
    """查询任务列表"""
    query = TaskListQuery(
        status=status,
        priority=priority,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    tasks, total = await service.list_tasks(query)
    return {
        "status": "success",
        "data": {
            "tasks": [task.to_wire() for task in tasks],
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "totalPages": math.ceil(total / limit),
            },
        },
    }


@router.get("/api/tasks/{task_id}")
async def get_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
):
    """查询任务详情"""
    task = await service.get_task(task_id)
    if task is None:
        raise _not_found(task_id)
    return {"status": "success", "data": {"task": task.to_wire()}}


@router.put("/api/tasks/{task_id}")
async def update_task(
    task_id: str,
    payload: TaskUpdate,
    service: TaskService = Depends(get_task_service),
):
    """更新任务字段（状态除外）"""
    task = await service.update_task(task_id, payload)
    if task is None:
        raise _not_found(task_id)
    return {
        "status": "success",
        "data": {"task": task.to_wire()},
        "message": "Task updated",
    }


@router.patch("/api/tasks/{task_id}/status")
async def update_task_status(
    task_id: str,
    payload: TaskStatusUpdate,
    service: TaskService = Depends(get_task_service),
):
    """变更任务状态"""
    task = await service.update_task_status(task_id, payload.status)
    if task is None:
        raise _not_found(task_id)
    return {
        "status": "success",
        "data": {"task": task.to_wire()},
        "message": "Task status updated",
    }


@router.delete("/api/tasks/{task_id}")
async def delete_task(
    task_id: str,
    service: TaskService = Depends(get_task_service),
):
    """删除任务"""
    task = await service.delete_task(task_id)
    if task is None:
        raise _not_found(task_id)
    return {"status": "success", "message": "Task deleted"}
