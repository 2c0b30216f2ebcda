"""CLI 入口模块 -- python -m taskhub.core <command>

支持的命令：
  reset-statistics  从 tasks 表重建统计单例行
"""

import asyncio
import sys

from .config import get_db_path


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m taskhub.core <command>")
        print("命令:")
        print("  reset-statistics  从 tasks 表重建统计单例行")
        sys.exit(1)

    command = sys.argv[1]

    if command == "reset-statistics":
        asyncio.run(reset_statistics())
    else:
        print(f"未知命令: {command}")
        print("可用命令: reset-statistics")
        sys.exit(1)


async def reset_statistics() -> None:
    """执行统计重建"""
    from .statistics import rebuild_statistics
    from .store import create_store_group

    db_path = get_db_path()

    print(f"数据库路径: {db_path}")
    print("开始重建统计信息...")

    store_group = await create_store_group(db_path)

    try:
        statistics = await rebuild_statistics(
            store_group.conn,
            store_group.write_lock,
            store_group.task_store,
            store_group.statistics_store,
        )
        print(
            f"重建完成，任务总数 {statistics.total_tasks}"
            f"（TODO {statistics.todo_tasks} / IN_PROGRESS {statistics.in_progress_tasks}"
            f" / DONE {statistics.done_tasks}）"
        )
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
