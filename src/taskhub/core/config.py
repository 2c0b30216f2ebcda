"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、统计单例行 ID、任务字段长度限制等可配置常量。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKHUB_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TASKHUB_DB_PATH",
        str(_get_base_dir() / "sqlite" / "taskhub.db"),
    )


# 统计信息单例行的固定主键
STATISTICS_SINGLETON_ID = "singleton"

# 任务字段长度限制
TASK_TITLE_MAX_LENGTH = 100
TASK_DESCRIPTION_MAX_LENGTH = 500

# 列表分页默认值
DEFAULT_PAGE_SIZE: int = int(os.environ.get("TASKHUB_DEFAULT_PAGE_SIZE", "10"))
MAX_PAGE_SIZE = 100
