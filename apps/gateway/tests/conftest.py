"""apps/gateway 测试配置 -- httpx AsyncClient + 临时 DB 的 app fixture"""

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from taskflow.core.config import LifecycleConfig
from taskflow.core.store import create_store_group
from taskflow.gateway.services.sse_hub import SSEHub


@pytest.fixture
def lifecycle_config() -> LifecycleConfig:
    """默认配置；测试可覆盖此 fixture 调整策略"""
    return LifecycleConfig()


@pytest_asyncio.fixture
async def test_app(tmp_path: Path, lifecycle_config: LifecycleConfig):
    """创建测试用 FastAPI app 实例"""
    os.environ["TASKFLOW_DB_PATH"] = str(tmp_path / "test.db")

    from taskflow.gateway.main import create_app

    app = create_app()

    # 手动初始化（绕过 lifespan）
    store_group = await create_store_group(str(tmp_path / "test.db"))
    app.state.store_group = store_group
    app.state.sse_hub = SSEHub()
    app.state.lifecycle_config = lifecycle_config

    yield app

    await store_group.conn.close()
    os.environ.pop("TASKFLOW_DB_PATH", None)


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac


# 从 todo 推进到目标状态需要调用的动作
ACTION_PATH: dict[str, list[str]] = {
    "todo": [],
    "in_progress": ["start"],
    "review": ["start", "submit-review"],
    "done": ["start", "complete"],
}


@pytest_asyncio.fixture
async def create_task(client: AsyncClient) -> Callable[..., Awaitable[dict]]:
    """通过 API 创建任务并按动作推进到指定状态，返回任务 JSON"""

    async def _create(status: str = "todo", title: str = "测试任务", **fields) -> dict:
        resp = await client.post("/api/tasks", json={"title": title, **fields})
        assert resp.status_code == 201, resp.text
        task = resp.json()
        for action in ACTION_PATH[status]:
            resp = await client.post(f"/api/tasks/{task['task_id']}/{action}")
            assert resp.status_code == 200, resp.text
            task = resp.json()
        return task

    return _create
