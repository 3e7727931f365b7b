"""事务一致性单元测试

测试内容：
1. 状态条件更新 + 审计事件在同一事务内提交
2. 条件不满足时抛出 ConcurrentModificationError，事件和 projection 都不写入
3. 事件写入失败时状态更新一并回滚
"""

from datetime import UTC, datetime

import aiosqlite
import pytest
from taskflow.core.exceptions import ConcurrentModificationError
from taskflow.core.models import Event, EventType, StateTransitionPayload, TaskStatus
from taskflow.core.store.transaction import transition_status_with_event


def _transition_event(task_id: str, seq: int, from_status, to_status) -> Event:
    return Event(
        event_id=f"7ZZEVT_TX_{seq:016d}",
        task_id=task_id,
        task_seq=seq,
        ts=datetime.now(UTC),
        type=EventType.STATE_TRANSITION,
        actor_id="tester",
        payload=StateTransitionPayload(
            from_status=from_status,
            to_status=to_status,
        ).model_dump(mode="json"),
        trace_id=f"trace-{task_id}",
    )


class TestTransactionAtomicity:
    async def test_status_and_event_commit_together(self, store_group, insert_task):
        task = await insert_task()
        event = _transition_event(task.task_id, 2, TaskStatus.TODO, TaskStatus.IN_PROGRESS)

        await transition_status_with_event(
            store_group.conn,
            store_group.task_store,
            store_group.event_store,
            event,
            expected_from=TaskStatus.TODO,
            to_status=TaskStatus.IN_PROGRESS,
        )

        stored = await store_group.task_store.get_task(task.task_id)
        assert stored.status == TaskStatus.IN_PROGRESS
        assert stored.pointers.latest_event_id == event.event_id
        events = await store_group.event_store.get_events_for_task(task.task_id)
        assert [e.task_seq for e in events] == [1, 2]

    async def test_stale_expected_status_rolls_back(self, store_group, insert_task):
        task = await insert_task()
        event = _transition_event(task.task_id, 2, TaskStatus.REVIEW, TaskStatus.DONE)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            await transition_status_with_event(
                store_group.conn,
                store_group.task_store,
                store_group.event_store,
                event,
                expected_from=TaskStatus.REVIEW,
                to_status=TaskStatus.DONE,
            )
        assert exc_info.value.expected_status == "review"

        assert await store_group.task_store.get_status(task.task_id) == TaskStatus.TODO
        events = await store_group.event_store.get_events_for_task(task.task_id)
        assert len(events) == 1

    async def test_event_failure_rolls_back_status(self, store_group, insert_task):
        """事件 task_seq 冲突时，已执行的状态更新被回滚"""
        task = await insert_task()
        event = _transition_event(task.task_id, 1, TaskStatus.TODO, TaskStatus.IN_PROGRESS)

        with pytest.raises(aiosqlite.IntegrityError):
            await transition_status_with_event(
                store_group.conn,
                store_group.task_store,
                store_group.event_store,
                event,
                expected_from=TaskStatus.TODO,
                to_status=TaskStatus.IN_PROGRESS,
            )

        assert await store_group.task_store.get_status(task.task_id) == TaskStatus.TODO
