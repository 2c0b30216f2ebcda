"""统计信息路由

GET  /api/statistics        读取统计单例行（不存在时 404）
POST /api/statistics/reset  从任务表重建计数并清零当日计数（测试/调试用）
"""

from fastapi import APIRouter, Depends
from taskhub.core.statistics import rebuild_statistics
from taskhub.core.store import StoreGroup

from ..deps import get_store_group
from ..errors import NotFoundError

router = APIRouter()


@router.get("/api/statistics")
async def get_statistics(store_group: StoreGroup = Depends(get_store_group)):
    """读取任务统计信息"""
    statistics = await store_group.statistics_store.get()
    if statistics is None:
        raise NotFoundError("Task statistics not found")
    return statistics.to_response().model_dump(mode="json", by_alias=True)


@router.post("/api/statistics/reset")
async def reset_statistics(store_group: StoreGroup = Depends(get_store_group)):
    """重建统计信息"""
    statistics = await rebuild_statistics(
        store_group.conn,
        store_group.write_lock,
        store_group.task_store,
        store_group.statistics_store,
    )
    return {
        "status": "success",
        "message": "Task statistics reset",
        "data": statistics.to_response().model_dump(mode="json", by_alias=True),
    }
