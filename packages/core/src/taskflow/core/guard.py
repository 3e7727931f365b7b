"""TransitionGuard -- 任务状态的唯一写入口

所有 status 写入（命名动作、通用状态接口、批量接口）都经由
apply_transition：校验流转表、条件写入、同事务落盘审计事件。
创建与通用更新路径通过 enforce_creation_status / reject_direct_status_write
保证不会绕过状态机。
"""

import asyncio
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import aiosqlite
import structlog
from ulid import ULID

from .config import LifecycleConfig
from .exceptions import (
    ConcurrentModificationError,
    ForbiddenFieldError,
    IllegalTransitionError,
    InvalidInitialStatusError,
    TaskNotFoundError,
    TransitionTimeoutError,
)
from .models.enums import EventType, TaskAction, TaskStatus
from .models.event import Event
from .models.payloads import StateTransitionPayload
from .models.task import Task
from .state_machine import can_transition, describe_rejection, describe_transition
from .store import StoreGroup
from .store.protocols import AuditTrail
from .store.transaction import commit_transaction, stage_status_transition

log = structlog.get_logger()


class TransitionGuard:
    """状态流转守卫"""

    _max_task_seq_retries = 3

    def __init__(
        self,
        store_group: StoreGroup,
        audit_trail: AuditTrail | None = None,
        config: LifecycleConfig | None = None,
    ) -> None:
        self._stores = store_group
        self._audit_trail = audit_trail
        self._config = config or LifecycleConfig()

    async def apply_transition(
        self,
        task_id: str,
        to_status: TaskStatus,
        actor_id: str,
        *,
        expected_from: TaskStatus | None = None,
        action: TaskAction = TaskAction.CHANGE_STATUS,
        reason: str = "",
    ) -> Task:
        """校验并执行一次状态流转

        Args:
            task_id: 任务 ID
            to_status: 目标状态
            actor_id: 操作者 ID，写入审计事件
            expected_from: 命名动作要求的起始状态；None 表示任意合法起点
            action: 触发流转的动作
            reason: 附加说明（如审核退回原因）

        Returns:
            流转后的 Task；恒等流转原样返回且不写事件

        Raises:
            TaskNotFoundError: 任务不存在
            IllegalTransitionError: 流转不在流转表中，或当前状态不满足 expected_from
            ConcurrentModificationError: 读取后状态已被并发修改
            TransitionTimeoutError: 等锁或提交前的写入超过 transition_timeout_s，状态未变
        """
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)

        current = task.status
        if (expected_from is not None and current != expected_from) or not can_transition(
            current, to_status
        ):
            log.info(
                "task_transition_rejected",
                task_id=task_id,
                from_status=current.value,
                to_status=to_status.value,
                action=action.value,
                actor_id=actor_id,
            )
            raise IllegalTransitionError(
                current.value,
                to_status.value,
                message=describe_rejection(current, to_status),
            )

        if current == to_status:
            return task

        try:
            event = await self._write_transition(
                task_id, current, to_status, actor_id, action, reason
            )
        except ConcurrentModificationError:
            log.warning(
                "task_concurrent_modification",
                task_id=task_id,
                expected_status=current.value,
                to_status=to_status.value,
                actor_id=actor_id,
            )
            raise

        log.info(
            "task_transition_applied",
            task_id=task_id,
            from_status=current.value,
            to_status=to_status.value,
            action=action.value,
            actor_id=actor_id,
            event_id=event.event_id,
        )
        await self._notify(event)

        updated = await self._stores.task_store.get_task(task_id)
        if updated is None:
            raise TaskNotFoundError(task_id)
        return updated

    async def _write_transition(
        self,
        task_id: str,
        from_status: TaskStatus,
        to_status: TaskStatus,
        actor_id: str,
        action: TaskAction,
        reason: str,
    ) -> Event:
        """条件写入状态并追加 STATE_TRANSITION 事件，task_seq 冲突时重试

        transition_timeout_s 覆盖等锁与事务内写入；进入 commit 后不再受超时约束，
        超时只可能发生在未提交阶段，此时事务已回滚。
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._config.transition_timeout_s
        conn = self._stores.conn
        lock = self._stores.write_lock

        try:
            await asyncio.wait_for(lock.acquire(), timeout=self._config.transition_timeout_s)
        except TimeoutError:
            raise self._timeout_error(task_id) from None

        try:
            for attempt in range(1, self._max_task_seq_retries + 1):
                try:
                    event = await asyncio.wait_for(
                        self._stage_transition(
                            task_id, from_status, to_status, actor_id, action, reason
                        ),
                        timeout=max(deadline - loop.time(), 0),
                    )
                except TimeoutError:
                    await conn.rollback()
                    raise self._timeout_error(task_id) from None
                except aiosqlite.IntegrityError as e:
                    await conn.rollback()
                    if is_task_seq_conflict(e) and attempt < self._max_task_seq_retries:
                        log.warning(
                            "task_seq_conflict_retry",
                            task_id=task_id,
                            attempt=attempt,
                        )
                        continue
                    raise
                except BaseException:
                    await conn.rollback()
                    raise

                await commit_transaction(conn)
                return event
        finally:
            lock.release()

        raise RuntimeError("failed to append state transition after retries")

    async def _stage_transition(
        self,
        task_id: str,
        from_status: TaskStatus,
        to_status: TaskStatus,
        actor_id: str,
        action: TaskAction,
        reason: str,
    ) -> Event:
        seq = await self._stores.event_store.get_next_task_seq(task_id)
        event = Event(
            event_id=str(ULID()),
            task_id=task_id,
            task_seq=seq,
            ts=datetime.now(UTC),
            type=EventType.STATE_TRANSITION,
            actor_id=actor_id,
            payload=StateTransitionPayload(
                from_status=from_status,
                to_status=to_status,
                action=action,
                reason=reason,
                description=describe_transition(from_status, to_status),
            ).model_dump(mode="json"),
            trace_id=f"trace-{task_id}",
        )
        await stage_status_transition(
            self._stores.task_store,
            self._stores.event_store,
            event,
            expected_from=from_status,
            to_status=to_status,
        )
        return event

    def _timeout_error(self, task_id: str) -> TransitionTimeoutError:
        log.error(
            "task_transition_timeout",
            task_id=task_id,
            timeout_s=self._config.transition_timeout_s,
        )
        return TransitionTimeoutError(task_id, self._config.transition_timeout_s)

    async def _notify(self, event: Event) -> None:
        """把已落盘的事件交给审计接收方，失败只记录不回滚"""
        if self._audit_trail is None:
            return
        try:
            await self._audit_trail.record(event)
        except Exception as e:
            log.warning(
                "audit_trail_record_failed",
                task_id=event.task_id,
                event_id=event.event_id,
                error_type=type(e).__name__,
            )

    def reject_direct_status_write(self, payload: Mapping[str, Any]) -> None:
        """通用更新载荷中出现 status 即拒绝，不做部分写入

        Raises:
            ForbiddenFieldError: payload 含 status 键（无论取值）
        """
        if "status" in payload:
            log.warning("direct_status_write_rejected", fields=sorted(payload))
            raise ForbiddenFieldError("status")

    def enforce_creation_status(self, payload: Mapping[str, Any]) -> TaskStatus:
        """决定新任务的初始状态，恒为 todo

        policy=override 时忽略调用方提供的其他状态并记录告警；
        policy=reject 时抛出 InvalidInitialStatusError。
        """
        requested = payload.get("status")
        if requested is None or str(requested).strip() == "":
            return TaskStatus.TODO
        if str(requested).strip().lower() == TaskStatus.TODO.value:
            return TaskStatus.TODO

        if self._config.creation_status_policy == "reject":
            log.info("creation_status_rejected", requested=str(requested))
            raise InvalidInitialStatusError(str(requested))

        log.warning(
            "creation_status_overridden",
            requested=str(requested),
            enforced=TaskStatus.TODO.value,
        )
        return TaskStatus.TODO


def is_task_seq_conflict(error: Exception) -> bool:
    """判断 IntegrityError 是否来自 (task_id, task_seq) 唯一约束"""
    if not isinstance(error, aiosqlite.IntegrityError):
        return False
    text = str(error)
    return "idx_events_task_seq" in text or "events.task_id, events.task_seq" in text
