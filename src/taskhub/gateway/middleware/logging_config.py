"""structlog 配置模块

TASKHUB_LOG_FORMAT=json 输出结构化 JSON，其他取值输出可读的控制台格式。
uvicorn、google-cloud-pubsub 的标准库 logging 也经由同一个 formatter 渲染。
"""

import logging
import os

import structlog

# gRPC / google-auth 在 DEBUG 级别下每次 pull 都会刷屏
NOISY_LOGGERS = ("google.api_core", "google.auth", "urllib3")


def setup_logging() -> None:
    """初始化 structlog 配置（TASKHUB_LOG_FORMAT / TASKHUB_LOG_LEVEL）"""
    log_format = os.environ.get("TASKHUB_LOG_FORMAT", "dev")
    level = getattr(logging, os.environ.get("TASKHUB_LOG_LEVEL", "INFO").upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=shared_processors)
    )
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
