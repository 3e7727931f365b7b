"""TaskLifecycleService -- 任务生命周期动作

每个命名动作固定 (from, to)，统一委托 TransitionGuard.apply_transition；
批量状态变更逐任务独立执行并分别汇报结果。
"""

import asyncio

import structlog
from pydantic import BaseModel, Field
from taskflow.core.config import LifecycleConfig
from taskflow.core.exceptions import StatusEndpointDisabledError, TaskFlowError
from taskflow.core.guard import TransitionGuard
from taskflow.core.models import Task, TaskAction, TaskStatus
from taskflow.core.state_machine import rule_for

log = structlog.get_logger()


class BatchItemResult(BaseModel):
    """批量状态变更的单项结果"""

    task_id: str
    ok: bool
    task: Task | None = None
    error: dict | None = Field(default=None, description="失败时的 {code, message, ...}")


class TaskLifecycleService:
    """任务生命周期服务"""

    def __init__(self, guard: TransitionGuard, config: LifecycleConfig | None = None) -> None:
        self._guard = guard
        self._config = config or LifecycleConfig()

    async def start(self, task_id: str, actor_id: str) -> Task:
        """开始任务：todo -> in_progress"""
        return await self._run_action(TaskAction.START, task_id, actor_id)

    async def submit_review(self, task_id: str, actor_id: str) -> Task:
        """提交审核：in_progress -> review"""
        return await self._run_action(TaskAction.SUBMIT_REVIEW, task_id, actor_id)

    async def approve(self, task_id: str, actor_id: str) -> Task:
        """审核通过：review -> done"""
        return await self._run_action(TaskAction.APPROVE, task_id, actor_id)

    async def reject(self, task_id: str, actor_id: str, reason: str = "") -> Task:
        """审核退回：review -> in_progress，reason 记录在审计事件中"""
        return await self._run_action(TaskAction.REJECT, task_id, actor_id, reason=reason)

    async def complete(self, task_id: str, actor_id: str) -> Task:
        """直接完成（跳过审核）：in_progress -> done"""
        return await self._run_action(TaskAction.COMPLETE, task_id, actor_id)

    async def reopen(self, task_id: str, actor_id: str) -> Task:
        """重新打开：done -> in_progress"""
        return await self._run_action(TaskAction.REOPEN, task_id, actor_id)

    async def change_status(
        self,
        task_id: str,
        to_status: TaskStatus,
        actor_id: str,
        reason: str = "",
    ) -> Task:
        """通用状态变更，只要流转表允许即可

        Raises:
            StatusEndpointDisabledError: enable_status_endpoint 为 False
        """
        if not self._config.enable_status_endpoint:
            raise StatusEndpointDisabledError()
        return await self._guard.apply_transition(
            task_id,
            to_status,
            actor_id,
            action=TaskAction.CHANGE_STATUS,
            reason=reason,
        )

    async def batch_update_status(
        self,
        task_ids: list[str],
        to_status: TaskStatus,
        actor_id: str,
    ) -> list[BatchItemResult]:
        """批量状态变更

        各任务独立校验与提交，不保证全部成功或全部失败；
        结果按请求顺序返回。并发度受 batch_concurrency 限制。
        单项的意外异常记为 INTERNAL_ERROR，不影响其他项；
        整体被取消时尚未开始的项不再执行，已提交的项保持提交。
        """
        semaphore = asyncio.Semaphore(self._config.batch_concurrency)

        async def run_one(task_id: str) -> BatchItemResult:
            async with semaphore:
                try:
                    task = await self._guard.apply_transition(
                        task_id,
                        to_status,
                        actor_id,
                        action=TaskAction.CHANGE_STATUS,
                    )
                except TaskFlowError as e:
                    return BatchItemResult(task_id=task_id, ok=False, error=e.to_dict())
                except Exception as e:
                    log.error(
                        "batch_item_failed",
                        task_id=task_id,
                        to_status=to_status.value,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    return BatchItemResult(
                        task_id=task_id,
                        ok=False,
                        error={"code": "INTERNAL_ERROR", "message": f"{type(e).__name__}: {e}"},
                    )
                return BatchItemResult(task_id=task_id, ok=True, task=task)

        results = await asyncio.gather(*(run_one(task_id) for task_id in task_ids))

        succeeded = sum(1 for r in results if r.ok)
        log.info(
            "batch_status_completed",
            to_status=to_status.value,
            total=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            actor_id=actor_id,
        )
        return list(results)

    async def _run_action(
        self,
        action: TaskAction,
        task_id: str,
        actor_id: str,
        reason: str = "",
    ) -> Task:
        from_status, to_status = rule_for(action)
        return await self._guard.apply_transition(
            task_id,
            to_status,
            actor_id,
            expected_from=from_status,
            action=action,
            reason=reason,
        )
