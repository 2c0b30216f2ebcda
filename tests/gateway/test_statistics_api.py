"""统计 API 测试"""

from datetime import UTC, datetime

from taskhub.core.models import StatisticsDelta, TaskPriority, TaskStatus
from taskhub.core.store import apply_statistics_delta, create_task_and_commit, write_transaction


class TestGetStatistics:
    async def test_not_found_before_initialization(self, client):
        resp = await client.get("/api/statistics")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Task statistics not found"

    async def test_camel_case_response(self, client, store_group):
        now = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)
        async with write_transaction(store_group.conn, store_group.write_lock):
            await store_group.statistics_store.create_initial(now)
        await apply_statistics_delta(
            store_group.conn,
            store_group.write_lock,
            store_group.statistics_store,
            StatisticsDelta(total_tasks=2, todo_tasks=1, done_tasks=1, high_priority=2, created_today=2),
            now,
        )

        resp = await client.get("/api/statistics")

        assert resp.status_code == 200
        assert resp.json() == {
            "totalTasks": 2,
            "byStatus": {"todo": 1, "inProgress": 0, "done": 1},
            "byPriority": {"low": 0, "medium": 0, "high": 2},
            "today": {"created": 2, "completed": 0},
            "lastUpdated": "2025-03-10T09:00:00Z",
        }


class TestResetStatistics:
    async def test_reset_recounts_from_tasks(self, client, store_group, make_task):
        for status, priority in [
            (TaskStatus.TODO, TaskPriority.LOW),
            (TaskStatus.IN_PROGRESS, TaskPriority.LOW),
        ]:
            await create_task_and_commit(
                store_group.conn,
                store_group.write_lock,
                store_group.task_store,
                make_task(status=status, priority=priority),
            )

        resp = await client.post("/api/statistics/reset")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "success"
        assert body["data"]["totalTasks"] == 2
        assert body["data"]["byStatus"] == {"todo": 1, "inProgress": 1, "done": 0}
        assert body["data"]["byPriority"]["low"] == 2
        assert body["data"]["today"] == {"created": 0, "completed": 0}

        assert (await client.get("/api/statistics")).json()["totalTasks"] == 2
