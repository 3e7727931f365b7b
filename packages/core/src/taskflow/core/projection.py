"""Projection 重建模块

从 events 表重建 tasks 表（物化视图），确保事件溯源的一致性。
支持单事件应用和全量重建两种模式。
"""

import time
from datetime import datetime

import aiosqlite
import structlog

from .models.enums import EventType, TaskStatus
from .models.event import Event
from .models.task import Task, TaskPointers
from .state_machine import parse_status
from .store.event_store import SqliteEventStore
from .store.task_store import SqliteTaskStore

log = structlog.get_logger()


def apply_event(tasks: dict[str, Task], event: Event) -> None:
    """将单个事件应用到 Task 状态（内存中操作）

    Args:
        tasks: task_id -> Task 的映射表（会被就地修改）
        event: 要应用的事件
    """
    task_id = event.task_id
    payload = event.payload

    if event.type == EventType.TASK_CREATED:
        # 新任务恒为 todo，payload 中的 status 仅作记录
        tasks[task_id] = Task(
            task_id=task_id,
            created_at=event.ts,
            updated_at=event.ts,
            status=TaskStatus.TODO,
            title=payload.get("title", ""),
            description=payload.get("description", ""),
            parent_id=payload.get("parent_id"),
            pointers=TaskPointers(latest_event_id=event.event_id),
        )
        return

    task = tasks.get(task_id)
    if task is None:
        log.warning("projection_orphan_event", task_id=task_id, event_id=event.event_id)
        return

    update: dict = {
        "updated_at": event.ts,
        "pointers": TaskPointers(latest_event_id=event.event_id),
    }
    if event.type == EventType.STATE_TRANSITION:
        new_status = parse_status(payload.get("to_status", task.status))
        update["status"] = new_status
        update["completed_at"] = _completed_at(new_status, event.ts)
    elif event.type == EventType.TASK_UPDATED:
        for field, value in payload.get("changes", {}).items():
            if field in ("title", "description") and value is not None:
                update[field] = value

    tasks[task_id] = task.model_copy(update=update)


def _completed_at(status: TaskStatus, ts: datetime) -> datetime | None:
    return ts if status == TaskStatus.DONE else None


async def rebuild_all(
    conn: aiosqlite.Connection,
    event_store: SqliteEventStore,
    task_store: SqliteTaskStore,
) -> int:
    """从 events 表重建 tasks 表

    流程：
    1. 读取所有事件（按 task_id, task_seq 排序）
    2. 在内存中应用所有事件，构建 Task 状态
    3. 清空 tasks 表
    4. 写入重建后的所有 Task

    Returns:
        处理的事件总数
    """
    start_time = time.monotonic()

    events = await event_store.get_all_events()
    event_count = len(events)

    await log.ainfo(
        "projection_rebuild_started",
        event_count=event_count,
    )

    tasks: dict[str, Task] = {}
    for event in events:
        apply_event(tasks, event)

    # 临时禁用外键约束，清空 tasks 表后重建（子任务可能先于父任务写入）
    await conn.execute("PRAGMA foreign_keys = OFF")
    try:
        await conn.execute("DELETE FROM tasks")
        for task in tasks.values():
            await task_store.create_task(task)
        await conn.commit()
    except BaseException:
        await conn.rollback()
        raise
    finally:
        await conn.execute("PRAGMA foreign_keys = ON")

    elapsed_ms = int((time.monotonic() - start_time) * 1000)
    await log.ainfo(
        "projection_rebuild_completed",
        event_count=event_count,
        task_count=len(tasks),
        elapsed_ms=elapsed_ms,
    )

    return event_count
