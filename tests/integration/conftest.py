"""集成测试共享 fixture"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from taskflow.core.config import LifecycleConfig
from taskflow.core.store import create_store_group
from taskflow.gateway.services.sse_hub import SSEHub


async def build_app(db_path: str):
    """创建 app 并手动初始化 app.state（ASGITransport 不触发 lifespan）"""
    from taskflow.gateway.main import create_app

    app = create_app()
    app.state.store_group = await create_store_group(db_path)
    app.state.sse_hub = SSEHub()
    app.state.lifecycle_config = LifecycleConfig()
    return app


@pytest_asyncio.fixture
async def integration_app(tmp_path: Path):
    """集成测试用 FastAPI app"""
    db_path = str(tmp_path / "test.db")
    os.environ["TASKFLOW_DB_PATH"] = db_path

    app = await build_app(db_path)

    yield app

    await app.state.store_group.conn.close()
    os.environ.pop("TASKFLOW_DB_PATH", None)


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
