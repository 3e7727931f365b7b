"""任务路由测试

测试内容：
1. 创建任务时初始状态恒为 todo（override / reject 策略）
2. 通用更新携带 status 时整体拒绝
3. 详情含可选流转与事件；列表筛选；事件历史
"""

import pytest
from httpx import AsyncClient
from taskflow.core.config import LifecycleConfig


class TestCreateTask:
    async def test_create_defaults_to_todo(self, client: AsyncClient):
        resp = await client.post("/api/tasks", json={"title": "新任务", "description": "d"})
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "todo"
        assert data["status_label"] == "待办"
        assert len(data["task_id"]) == 26

    async def test_requested_status_is_overridden(self, client: AsyncClient):
        resp = await client.post("/api/tasks", json={"title": "想直接完成", "status": "done"})
        assert resp.status_code == 201
        task_id = resp.json()["task_id"]
        assert resp.json()["status"] == "todo"

        stored = await client.get(f"/api/tasks/{task_id}")
        assert stored.json()["task"]["status"] == "todo"

    async def test_subtask_starts_as_todo(self, client: AsyncClient, create_task):
        parent = await create_task("in_progress", title="父任务")
        resp = await client.post(
            "/api/tasks",
            json={"title": "子任务", "parent_id": parent["task_id"], "status": "in_progress"},
        )
        assert resp.status_code == 201
        assert resp.json()["status"] == "todo"
        assert resp.json()["parent_id"] == parent["task_id"]

    async def test_unknown_parent(self, client: AsyncClient):
        resp = await client.post("/api/tasks", json={"title": "孤儿", "parent_id": "missing"})
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "PARENT_TASK_NOT_FOUND"

    async def test_empty_title_is_422(self, client: AsyncClient):
        resp = await client.post("/api/tasks", json={"title": ""})
        assert resp.status_code == 422


class TestCreateRejectPolicy:
    @pytest.fixture
    def lifecycle_config(self) -> LifecycleConfig:
        return LifecycleConfig(creation_status_policy="reject")

    async def test_non_todo_status_rejected(self, client: AsyncClient):
        resp = await client.post("/api/tasks", json={"title": "x", "status": "done"})
        assert resp.status_code == 400
        error = resp.json()["error"]
        assert error["code"] == "INVALID_INITIAL_STATUS"
        assert error["value"] == "done"

        listed = await client.get("/api/tasks")
        assert listed.json()["tasks"] == []

    async def test_todo_status_allowed(self, client: AsyncClient):
        resp = await client.post("/api/tasks", json={"title": "x", "status": "todo"})
        assert resp.status_code == 201


class TestUpdateTask:
    async def test_update_fields(self, client: AsyncClient, create_task):
        task = await create_task()
        resp = await client.patch(
            f"/api/tasks/{task['task_id']}",
            json={"title": "改过的标题"},
            headers={"X-Actor-Id": "editor"},
        )
        assert resp.status_code == 200
        assert resp.json()["title"] == "改过的标题"
        assert resp.json()["status"] == "todo"

        events = (await client.get(f"/api/tasks/{task['task_id']}/events")).json()["events"]
        assert events[-1]["type"] == "TASK_UPDATED"
        assert events[-1]["actor_id"] == "editor"

    async def test_status_in_update_rejected_without_partial_apply(
        self, client: AsyncClient, create_task
    ):
        task = await create_task("in_progress", title="原标题")
        resp = await client.patch(
            f"/api/tasks/{task['task_id']}",
            json={"title": "不应写入", "status": "done"},
        )
        assert resp.status_code == 400
        error = resp.json()["error"]
        assert error["code"] == "FORBIDDEN_FIELD"
        assert error["field"] == "status"

        stored = (await client.get(f"/api/tasks/{task['task_id']}")).json()["task"]
        assert stored["title"] == "原标题"
        assert stored["status"] == "in_progress"

    async def test_status_rejected_even_when_unchanged(self, client: AsyncClient, create_task):
        task = await create_task()
        resp = await client.patch(f"/api/tasks/{task['task_id']}", json={"status": "todo"})
        assert resp.status_code == 400

    async def test_unknown_field_is_422(self, client: AsyncClient, create_task):
        task = await create_task()
        resp = await client.patch(f"/api/tasks/{task['task_id']}", json={"priority": "high"})
        assert resp.status_code == 422

    async def test_update_unknown_task(self, client: AsyncClient):
        resp = await client.patch("/api/tasks/missing", json={"title": "x"})
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "TASK_NOT_FOUND"


class TestQueryTasks:
    async def test_detail_includes_available_transitions(self, client: AsyncClient, create_task):
        task = await create_task("in_progress")
        resp = await client.get(f"/api/tasks/{task['task_id']}")
        assert resp.status_code == 200
        data = resp.json()
        targets = {t["status"]: t for t in data["available_transitions"]}
        assert set(targets) == {"todo", "review", "done"}
        assert targets["done"]["action"] == "complete"
        assert targets["review"]["action"] == "submit_review"
        assert targets["todo"]["action"] is None
        assert targets["review"]["label"] == "审核中"
        assert [e["type"] for e in data["events"]] == ["TASK_CREATED", "STATE_TRANSITION"]

    async def test_detail_unknown_task(self, client: AsyncClient):
        resp = await client.get("/api/tasks/01JNOTEXIST00000000000000A")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "TASK_NOT_FOUND"

    async def test_list_filters(self, client: AsyncClient, create_task):
        parent = await create_task("review", title="审核任务")
        await create_task(title="子任务", parent_id=parent["task_id"])

        review = (await client.get("/api/tasks", params={"status": "review"})).json()["tasks"]
        assert [t["title"] for t in review] == ["审核任务"]

        children = (
            await client.get("/api/tasks", params={"parent_id": parent["task_id"]})
        ).json()["tasks"]
        assert [t["title"] for t in children] == ["子任务"]

    async def test_list_unknown_status_is_422(self, client: AsyncClient):
        resp = await client.get("/api/tasks", params={"status": "archived"})
        assert resp.status_code == 422

    async def test_events_limit(self, client: AsyncClient, create_task):
        task = await create_task("done")
        resp = await client.get(f"/api/tasks/{task['task_id']}/events", params={"limit": 2})
        events = resp.json()["events"]
        assert [e["task_seq"] for e in events] == [2, 3]
        assert events[-1]["payload"]["to_status"] == "done"
