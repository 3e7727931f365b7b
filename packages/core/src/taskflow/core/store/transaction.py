"""事件+Projection 原子事务封装

在同一 SQLite 事务内原子提交审计事件和 Task projection 更新：
要么状态与事件同时落盘，要么都不落盘。
"""

import asyncio

import aiosqlite

from ..exceptions import ConcurrentModificationError
from ..models.enums import TaskStatus
from ..models.event import Event
from ..models.task import Task
from .event_store import SqliteEventStore
from .task_store import SqliteTaskStore


async def create_task_with_initial_events(
    conn: aiosqlite.Connection,
    task_store: SqliteTaskStore,
    event_store: SqliteEventStore,
    task: Task,
    events: list[Event],
) -> None:
    """单事务写入新 Task 与其初始事件"""
    try:
        await task_store.create_task(task)
        for event in events:
            await event_store.append_event(event)
        await conn.commit()
    except BaseException:
        await conn.rollback()
        raise


async def stage_status_transition(
    task_store: SqliteTaskStore,
    event_store: SqliteEventStore,
    event: Event,
    expected_from: TaskStatus,
    to_status: TaskStatus,
) -> None:
    """在当前事务内条件更新状态并追加 STATE_TRANSITION 事件，不提交

    调用方负责随后 commit_transaction 或 rollback。

    Raises:
        ConcurrentModificationError: 任务状态已不是 expected_from
    """
    applied = await task_store.conditional_update_status(
        task_id=event.task_id,
        expected_from=expected_from,
        to_status=to_status,
        updated_at=event.ts.isoformat(),
        latest_event_id=event.event_id,
    )
    if not applied:
        raise ConcurrentModificationError(event.task_id, expected_from.value)

    await event_store.append_event(event)


async def commit_transaction(conn: aiosqlite.Connection) -> None:
    """提交当前事务，提交失败时回滚

    commit 一旦发出就等到完成，调用方被取消不会中断提交。
    """
    try:
        await asyncio.shield(conn.commit())
    except asyncio.CancelledError:
        raise
    except Exception:
        await conn.rollback()
        raise


async def transition_status_with_event(
    conn: aiosqlite.Connection,
    task_store: SqliteTaskStore,
    event_store: SqliteEventStore,
    event: Event,
    expected_from: TaskStatus,
    to_status: TaskStatus,
) -> None:
    """在同一事务内写入 STATE_TRANSITION 事件并条件更新状态

    Args:
        conn: 数据库连接（需在同一连接上操作以保证事务性）
        task_store: TaskStore 实例
        event_store: EventStore 实例
        event: 要写入的审计事件
        expected_from: 写入前任务必须处于的状态
        to_status: 目标状态

    Raises:
        ConcurrentModificationError: 任务状态已不是 expected_from（事务已回滚）
    """
    try:
        await stage_status_transition(task_store, event_store, event, expected_from, to_status)
    except BaseException:
        await conn.rollback()
        raise

    # 原子提交
    await commit_transaction(conn)


async def update_fields_with_event(
    conn: aiosqlite.Connection,
    task_store: SqliteTaskStore,
    event_store: SqliteEventStore,
    event: Event,
    changes: dict[str, str | None],
) -> None:
    """写入 TASK_UPDATED 事件并更新非状态字段"""
    try:
        await event_store.append_event(event)
        await task_store.update_fields(
            task_id=event.task_id,
            changes=changes,
            updated_at=event.ts.isoformat(),
            latest_event_id=event.event_id,
        )
        await conn.commit()
    except BaseException:
        await conn.rollback()
        raise
