"""FastAPI 应用主文件

app 创建 + lifespan 管理：
- 启动：DB 初始化 -> Pub/Sub 组件组装 -> topic 初始化 -> 订阅者启动
- 关闭：等待后台发布 -> 停止订阅者 -> 关闭 broker 客户端 -> 关闭 DB
Pub/Sub 初始化失败时中止启动。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from taskhub.core.config import get_db_path
from taskhub.core.store import create_store_group
from taskhub.pubsub import create_pubsub_group, load_pubsub_config

from .errors import register_error_handlers
from .middleware.logging_config import setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .routes import health, statistics, tasks
from .services.event_dispatcher import EventDispatcher

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理"""
    # 启动：初始化 Store
    store_group = await create_store_group(get_db_path())
    app.state.store_group = store_group

    pubsub_config = load_pubsub_config()
    app.state.pubsub_config = pubsub_config
    pubsub_group = None

    if pubsub_config.enabled:
        pubsub_group = create_pubsub_group(pubsub_config, store_group)
        try:
            await pubsub_group.start()
        except Exception as e:
            await log.aerror(
                "pubsub_startup_failed",
                error_type=type(e).__name__,
                error=str(e),
            )
            await pubsub_group.stop()
            await store_group.conn.close()
            raise
        await log.ainfo(
            "pubsub_pipeline_started",
            project_id=pubsub_config.project_id,
            emulator=pubsub_config.emulator_host is not None,
        )
    else:
        await log.ainfo("pubsub_pipeline_disabled")

    app.state.pubsub_group = pubsub_group
    app.state.event_dispatcher = EventDispatcher(
        pubsub_group.publisher if pubsub_group else None
    )

    yield

    # 关闭：先等待后台发布，再停止订阅者
    await app.state.event_dispatcher.drain()
    if app.state.pubsub_group is not None:
        await app.state.pubsub_group.stop()
    if hasattr(app.state, "store_group") and app.state.store_group:
        await app.state.store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="TaskHub Gateway",
        version="0.1.0",
        description="任务管理 API + Pub/Sub 统计聚合",
        lifespan=lifespan,
    )

    app.add_middleware(LoggingMiddleware)
    register_error_handlers(app)

    # 初始化日志
    setup_logging()

    # 注册路由
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(statistics.router, tags=["statistics"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
