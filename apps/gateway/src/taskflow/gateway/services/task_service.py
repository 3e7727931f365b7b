"""TaskService -- 任务创建/更新/查询业务逻辑

状态字段不经此服务写入：
1. 创建时初始状态由 TransitionGuard.enforce_creation_status 决定（恒为 todo）
2. 通用更新在应用任何字段前先调用 reject_direct_status_write
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import aiosqlite
import structlog
from taskflow.core.config import LifecycleConfig
from taskflow.core.exceptions import ParentTaskNotFoundError, TaskNotFoundError
from taskflow.core.guard import TransitionGuard, is_task_seq_conflict
from taskflow.core.models import (
    Event,
    EventType,
    Task,
    TaskCreatedPayload,
    TaskCreateRequest,
    TaskStatus,
    TaskUpdatedPayload,
    TaskUpdateRequest,
)
from taskflow.core.state_machine import ACTION_RULES, label, permitted_targets
from taskflow.core.store import StoreGroup
from taskflow.core.store.transaction import (
    create_task_with_initial_events,
    update_fields_with_event,
)
from ulid import ULID

from .sse_hub import SSEHub

log = structlog.get_logger()


class TaskService:
    """任务业务服务"""

    _max_task_seq_retries = 3

    def __init__(
        self,
        store_group: StoreGroup,
        guard: TransitionGuard,
        sse_hub: SSEHub | None = None,
        config: LifecycleConfig | None = None,
    ) -> None:
        self._stores = store_group
        self._guard = guard
        self._sse_hub = sse_hub
        self._config = config or LifecycleConfig()

    async def create_task(self, request: TaskCreateRequest, actor_id: str) -> Task:
        """创建任务（含子任务），初始状态恒为 todo

        Raises:
            InvalidInitialStatusError: policy=reject 且请求了非 todo 状态
            ParentTaskNotFoundError: parent_id 指向不存在的任务
        """
        status = self._guard.enforce_creation_status(request.model_dump())

        if request.parent_id is not None:
            parent = await self._stores.task_store.get_task(request.parent_id)
            if parent is None:
                raise ParentTaskNotFoundError(request.parent_id)

        now = datetime.now(UTC)
        task_id = str(ULID())
        task = Task(
            task_id=task_id,
            created_at=now,
            updated_at=now,
            status=status,
            title=request.title,
            description=request.description,
            parent_id=request.parent_id,
        )
        event = Event(
            event_id=str(ULID()),
            task_id=task_id,
            task_seq=1,
            ts=now,
            type=EventType.TASK_CREATED,
            actor_id=actor_id,
            payload=TaskCreatedPayload(
                title=task.title,
                description=task.description,
                parent_id=task.parent_id,
                status=status,
            ).model_dump(mode="json"),
            trace_id=f"trace-{task_id}",
        )
        task.pointers.latest_event_id = event.event_id

        async with self._stores.write_lock:
            await create_task_with_initial_events(
                self._stores.conn,
                self._stores.task_store,
                self._stores.event_store,
                task,
                [event],
            )

        log.info(
            "task_created",
            task_id=task_id,
            parent_id=task.parent_id,
            actor_id=actor_id,
        )
        if self._sse_hub:
            await self._sse_hub.broadcast(task_id, event)
        return task

    async def update_task(
        self,
        task_id: str,
        payload: Mapping[str, Any],
        actor_id: str,
    ) -> Task:
        """通用字段更新

        payload 中出现 status 时整体拒绝，其他字段也不会写入。

        Raises:
            ForbiddenFieldError: payload 含 status
            pydantic.ValidationError: 其余字段不符合 TaskUpdateRequest
            TaskNotFoundError: 任务不存在
        """
        self._guard.reject_direct_status_write(payload)
        request = TaskUpdateRequest.model_validate(payload)

        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)

        changes = request.changes()
        if not changes:
            return task

        event = await self._append_update_with_retry(task_id, changes, actor_id)
        log.info(
            "task_updated",
            task_id=task_id,
            fields=sorted(changes),
            actor_id=actor_id,
        )
        if self._sse_hub:
            await self._sse_hub.broadcast(task_id, event)

        updated = await self._stores.task_store.get_task(task_id)
        if updated is None:
            raise TaskNotFoundError(task_id)
        return updated

    async def get_task(self, task_id: str) -> Task:
        """查询任务详情

        Raises:
            TaskNotFoundError: 任务不存在
        """
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def list_tasks(
        self,
        status: TaskStatus | None = None,
        parent_id: str | None = None,
    ) -> list[Task]:
        """查询任务列表"""
        return await self._stores.task_store.list_tasks(
            status.value if status else None,
            parent_id,
        )

    async def get_task_events(self, task_id: str, limit: int | None = None) -> list[Event]:
        """查询任务最近的事件（默认 event_history_limit 条）"""
        await self.get_task(task_id)
        return await self._stores.event_store.get_events_for_task(
            task_id,
            limit=limit or self._config.event_history_limit,
        )

    @staticmethod
    def available_transitions(task: Task) -> list[dict[str, str | None]]:
        """当前状态下可选的目标状态，附带对应的命名动作（如有）"""
        actions = {
            to_status: action.value
            for action, (from_status, to_status) in ACTION_RULES.items()
            if from_status == task.status
        }
        return [
            {
                "status": target.value,
                "label": label(target),
                "action": actions.get(target),
            }
            for target in sorted(permitted_targets(task.status))
        ]

    async def _append_update_with_retry(
        self,
        task_id: str,
        changes: dict[str, str | None],
        actor_id: str,
    ) -> Event:
        """写 TASK_UPDATED 事件并更新字段，在 task_seq 冲突时重试"""
        async with self._stores.write_lock:
            for attempt in range(1, self._max_task_seq_retries + 1):
                seq = await self._stores.event_store.get_next_task_seq(task_id)
                event = Event(
                    event_id=str(ULID()),
                    task_id=task_id,
                    task_seq=seq,
                    ts=datetime.now(UTC),
                    type=EventType.TASK_UPDATED,
                    actor_id=actor_id,
                    payload=TaskUpdatedPayload(changes=changes).model_dump(mode="json"),
                    trace_id=f"trace-{task_id}",
                )
                try:
                    await update_fields_with_event(
                        self._stores.conn,
                        self._stores.task_store,
                        self._stores.event_store,
                        event,
                        changes,
                    )
                    return event
                except aiosqlite.IntegrityError as e:
                    if is_task_seq_conflict(e) and attempt < self._max_task_seq_retries:
                        log.warning(
                            "task_seq_conflict_retry",
                            task_id=task_id,
                            attempt=attempt,
                        )
                        continue
                    raise

        raise RuntimeError("failed to append task update after retries")
