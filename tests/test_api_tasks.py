"""API tests for tasks: dynamic status, completion, subtasks and time tracking."""

from datetime import datetime, timedelta, timezone

from app.constants.constants import TaskStatus
from app.models.task import Task
from app.utils.dates import utcnow
from app.utils.schedulers.overdue_sweep import sweep_overdue_tasks
from app.utils.task_queries import list_tasks


async def insert_task(session_factory, user_id, **fields):
    """Insert a task directly, bypassing the due-date check of the API."""
    async with session_factory() as session:
        task = Task(
            user_id=user_id,
            title=fields.pop("title", "Old task"),
            due=fields.pop("due", utcnow() - timedelta(days=1)),
            status=fields.pop("status", TaskStatus.in_progress),
            tags=[],
            labels=[],
            subtasks=[],
            time_entries=[],
            comments=[],
            **fields,
        )
        session.add(task)
        await session.commit()
        return task.task_id


class TestCreateTask:

    async def test_create_and_fetch(self, jane):
        due = (datetime.now(timezone.utc) + timedelta(days=1)).replace(microsecond=0)
        response = await jane.post("/api/tasks/", json={
            "title": "Write report",
            "due": due.isoformat().replace("+00:00", "Z"),
            "priority": "high",
            "tags": [" work ", ""],
        })
        assert response.status_code == 201
        task = response.json()["data"]
        assert task["status"] == "in-progress"
        assert task["dynamicStatus"] == "in-progress"
        assert task["tags"] == ["work"]
        assert task["user"] == jane.user["id"]

        fetched = await jane.get(f"/api/tasks/{task['id']}")
        assert fetched.status_code == 200
        data = fetched.json()["data"]
        assert data["title"] == "Write report"
        assert data["priority"] == "high"
        assert data["dynamicStatus"] == "in-progress"
        # returned with its UTC offset
        assert datetime.fromisoformat(data["due"]) == due

    async def test_due_date_in_past_rejected(self, jane):
        response = await jane.post("/api/tasks/", json={
            "title": "Too late",
            "due": (utcnow() - timedelta(days=2)).isoformat(),
        })
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_DUE_DATE"

    async def test_other_users_cannot_read(self, jane, bob, tomorrow):
        created = await jane.post("/api/tasks/", json={"title": "Private", "due": tomorrow})
        response = await bob.get(f"/api/tasks/{created.json()['data']['id']}")
        assert response.status_code == 403

    async def test_unknown_task(self, jane):
        response = await jane.get("/api/tasks/does-not-exist")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "TASK_NOT_FOUND"


class TestDynamicStatus:

    async def test_overdue_reads_failed_without_write(self, jane, app_db):
        task_id = await insert_task(app_db, jane.user["id"])

        response = await jane.get(f"/api/tasks/{task_id}")
        data = response.json()["data"]
        assert data["status"] == "in-progress"
        assert data["dynamicStatus"] == "failed"

        async with app_db() as session:
            stored = await session.get(Task, task_id)
            assert stored.status == TaskStatus.in_progress

    async def test_status_filter_uses_effective_status(self, jane, app_db, tomorrow):
        await insert_task(app_db, jane.user["id"], title="Overdue")
        await jane.post("/api/tasks/", json={"title": "Upcoming", "due": tomorrow})

        response = await jane.get(f"/api/users/{jane.user['id']}/tasks", params={"status": "failed"})
        titles = [t["title"] for t in response.json()["data"]]
        assert titles == ["Overdue"]

        summary = await jane.get(f"/api/users/{jane.user['id']}/tasks/summary")
        assert summary.json()["data"]["failed"] == 1
        assert summary.json()["data"]["inProgress"] == 1

        # stored status still counts the overdue task as ongoing
        stats = await jane.get(f"/api/users/{jane.user['id']}/stats")
        assert stats.json()["data"]["failed"] == 0
        assert stats.json()["data"]["ongoing"] == 2

    async def test_status_clause_due_exactly_now(self, jane, app_db):
        due = utcnow().replace(microsecond=0)
        await insert_task(app_db, jane.user["id"], title="Boundary", due=due)

        async with app_db() as session:
            owned = Task.user_id == jane.user["id"]
            ongoing, ongoing_total = await list_tasks(session, owned, status=TaskStatus.in_progress, now=due)
            _, failed_total = await list_tasks(session, owned, status=TaskStatus.failed, now=due)
        assert [t.title for t in ongoing] == ["Boundary"]
        assert ongoing_total == 1
        assert failed_total == 0

    async def test_sweep_materializes_failed(self, jane, app_db, tomorrow):
        overdue_id = await insert_task(app_db, jane.user["id"])
        await jane.post("/api/tasks/", json={"title": "Upcoming", "due": tomorrow})

        async with app_db() as session:
            assert await sweep_overdue_tasks(session) == 1
        async with app_db() as session:
            assert await sweep_overdue_tasks(session) == 0
            stored = await session.get(Task, overdue_id)
            assert stored.status == TaskStatus.failed


class TestCompletion:

    async def test_complete_sets_completed_at(self, jane, tomorrow):
        created = await jane.post("/api/tasks/", json={"title": "Finish", "due": tomorrow})
        task_id = created.json()["data"]["id"]

        response = await jane.patch(f"/api/tasks/{task_id}/complete")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "completed"
        assert data["completedAt"] is not None
        assert data["progress"] == 100

    async def test_status_update_returns_stats(self, jane, tomorrow):
        created = await jane.post("/api/tasks/", json={"title": "Finish", "due": tomorrow})
        task_id = created.json()["data"]["id"]

        response = await jane.patch(f"/api/tasks/{task_id}/status", json={"status": "completed"})
        data = response.json()["data"]
        assert data["task"]["status"] == "completed"
        assert data["stats"]["completed"] == 1
        assert data["stats"]["completionRate"] == 100

    async def test_recurring_task_gets_next_due(self, jane, tomorrow):
        created = await jane.post("/api/tasks/", json={
            "title": "Standup notes",
            "due": tomorrow,
            "recurring": {"enabled": True, "pattern": "daily", "interval": 2},
        })
        task_id = created.json()["data"]["id"]
        response = await jane.patch(f"/api/tasks/{task_id}/complete")
        recurring = response.json()["data"]["recurring"]
        assert recurring["enabled"] is True
        assert recurring["nextDue"] is not None

    async def test_invalid_status_value(self, jane, tomorrow):
        created = await jane.post("/api/tasks/", json={"title": "Finish", "due": tomorrow})
        task_id = created.json()["data"]["id"]
        response = await jane.patch(f"/api/tasks/{task_id}/status", json={"status": "done"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestSubtasksAndTime:

    async def test_last_subtask_completes_task(self, jane, tomorrow):
        created = await jane.post("/api/tasks/", json={"title": "Parent", "due": tomorrow})
        task_id = created.json()["data"]["id"]
        first = (await jane.post(f"/api/tasks/{task_id}/subtasks", json={"title": "One"})).json()["data"]
        second = (await jane.post(f"/api/tasks/{task_id}/subtasks", json={"title": "Two"})).json()["data"]

        halfway = await jane.patch(f"/api/tasks/{task_id}/subtasks/{first['id']}/complete")
        assert halfway.json()["data"]["progress"] == 50
        assert halfway.json()["data"]["status"] == "in-progress"

        done = await jane.patch(f"/api/tasks/{task_id}/subtasks/{second['id']}/complete")
        assert done.json()["data"]["status"] == "completed"

    async def test_unknown_subtask(self, jane, tomorrow):
        created = await jane.post("/api/tasks/", json={"title": "Parent", "due": tomorrow})
        task_id = created.json()["data"]["id"]
        response = await jane.patch(f"/api/tasks/{task_id}/subtasks/nope/complete")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SUBTASK_NOT_FOUND"

    async def test_time_entries_sum_into_actual_time(self, jane, tomorrow):
        created = await jane.post("/api/tasks/", json={"title": "Tracked", "due": tomorrow})
        task_id = created.json()["data"]["id"]
        start = utcnow()

        first = await jane.post(f"/api/tasks/{task_id}/time-entries", json={
            "startTime": start.isoformat(),
            "endTime": (start + timedelta(minutes=90)).isoformat(),
        })
        assert first.status_code == 201
        assert first.json()["data"]["duration"] == 90
        await jane.post(f"/api/tasks/{task_id}/time-entries", json={"startTime": start.isoformat(), "duration": 30})

        task = (await jane.get(f"/api/tasks/{task_id}")).json()["data"]
        assert task["actualTime"] == 120
        assert len(task["timeEntries"]) == 2

    async def test_end_before_start(self, jane, tomorrow):
        created = await jane.post("/api/tasks/", json={"title": "Tracked", "due": tomorrow})
        task_id = created.json()["data"]["id"]
        start = utcnow()
        response = await jane.post(f"/api/tasks/{task_id}/time-entries", json={
            "startTime": start.isoformat(),
            "endTime": (start - timedelta(minutes=5)).isoformat(),
        })
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_TIME_RANGE"


class TestArchiveAndDelete:

    async def test_archived_tasks_hidden_from_listing(self, jane, tomorrow):
        created = await jane.post("/api/tasks/", json={"title": "Old news", "due": tomorrow})
        task_id = created.json()["data"]["id"]
        await jane.post(f"/api/tasks/{task_id}/archive")

        listing = await jane.get(f"/api/users/{jane.user['id']}/tasks")
        assert listing.json()["data"] == []
        archived = await jane.get(f"/api/users/{jane.user['id']}/tasks", params={"archived": "true"})
        assert [t["id"] for t in archived.json()["data"]] == [task_id]

        restored = await jane.post(f"/api/tasks/{task_id}/restore")
        assert restored.json()["data"]["archived"] is False

    async def test_delete(self, jane, tomorrow):
        created = await jane.post("/api/tasks/", json={"title": "Gone", "due": tomorrow})
        task_id = created.json()["data"]["id"]
        assert (await jane.delete(f"/api/tasks/{task_id}")).status_code == 200
        assert (await jane.get(f"/api/tasks/{task_id}")).status_code == 404
