"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store / 服务实例

实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Depends, Request
from taskhub.core.store import StoreGroup

from .services.event_dispatcher import EventDispatcher
from .services.task_service import TaskService


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_event_dispatcher(request: Request) -> EventDispatcher:
    """从 app.state 获取 EventDispatcher 实例"""
    return request.app.state.event_dispatcher


def get_task_service(
    store_group: StoreGroup = Depends(get_store_group),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> TaskService:
    return TaskService(store_group, dispatcher)
