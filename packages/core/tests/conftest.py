"""packages/core 测试配置 -- 核心层 fixture"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest_asyncio
from taskflow.core.guard import TransitionGuard
from taskflow.core.models import Event, EventType, Task, TaskCreatedPayload, TaskStatus
from taskflow.core.store import StoreGroup, create_store_group
from taskflow.core.store.transaction import create_task_with_initial_events
from ulid import ULID

# 从 todo 走到目标状态的路径
PATH_TO_STATUS: dict[TaskStatus, list[TaskStatus]] = {
    TaskStatus.TODO: [],
    TaskStatus.IN_PROGRESS: [TaskStatus.IN_PROGRESS],
    TaskStatus.REVIEW: [TaskStatus.IN_PROGRESS, TaskStatus.REVIEW],
    TaskStatus.DONE: [TaskStatus.IN_PROGRESS, TaskStatus.DONE],
}


@pytest_asyncio.fixture
async def core_db_path(tmp_path: Path) -> Path:
    """核心层临时数据库路径"""
    return tmp_path / "core_test.db"


@pytest_asyncio.fixture
async def store_group(core_db_path: Path) -> AsyncGenerator[StoreGroup, None]:
    group = await create_store_group(str(core_db_path))
    yield group
    await group.conn.close()


async def _insert_task(store_group: StoreGroup, title: str, **kwargs) -> Task:
    now = datetime.now(UTC)
    task_id = str(ULID())
    event = Event(
        event_id=str(ULID()),
        task_id=task_id,
        task_seq=1,
        ts=now,
        type=EventType.TASK_CREATED,
        actor_id="tester",
        payload=TaskCreatedPayload(title=title, **kwargs).model_dump(mode="json"),
        trace_id=f"trace-{task_id}",
    )
    task = Task(
        task_id=task_id,
        created_at=now,
        updated_at=now,
        title=title,
        **kwargs,
    )
    task.pointers.latest_event_id = event.event_id
    await create_task_with_initial_events(
        store_group.conn,
        store_group.task_store,
        store_group.event_store,
        task,
        [event],
    )
    return task


@pytest_asyncio.fixture
async def insert_task(store_group: StoreGroup) -> Callable[..., Awaitable[Task]]:
    """写入一个 todo 任务及其 TASK_CREATED 事件，group 缺省为 store_group"""

    async def _insert(
        title: str = "测试任务", group: StoreGroup | None = None, **kwargs
    ) -> Task:
        return await _insert_task(group or store_group, title, **kwargs)

    return _insert


@pytest_asyncio.fixture
async def seed_task(
    store_group: StoreGroup,
    insert_task: Callable[..., Awaitable[Task]],
) -> Callable[..., Awaitable[Task]]:
    """按合法路径把新任务推进到指定状态"""
    guard = TransitionGuard(store_group)

    async def _seed(status: TaskStatus = TaskStatus.TODO, title: str = "测试任务") -> Task:
        task = await insert_task(title=title)
        for step in PATH_TO_STATUS[status]:
            task = await guard.apply_transition(task.task_id, step, "seeder")
        return task

    return _seed
