"""任务生命周期动作路由

POST /api/tasks/{task_id}/start|submit-review|approve|reject|complete|reopen
PATCH /api/tasks/{task_id}/status: 通用状态变更（可由配置关闭）
POST /api/tasks/batch-status: 批量状态变更，逐任务返回结果
"""

from fastapi import APIRouter, Depends
from taskflow.core.models import BatchStatusRequest, RejectRequest, StatusChangeRequest

from ..deps import get_actor_id, get_lifecycle_service
from ..services.lifecycle_service import TaskLifecycleService
from .tasks import serialize_task

router = APIRouter()


@router.post("/api/tasks/batch-status")
async def batch_update_status(
    body: BatchStatusRequest,
    actor_id: str = Depends(get_actor_id),
    service: TaskLifecycleService = Depends(get_lifecycle_service),
):
    """批量状态变更：各任务独立成功或失败"""
    results = await service.batch_update_status(body.task_ids, body.status, actor_id)
    return {
        "results": [
            {
                "task_id": r.task_id,
                "ok": r.ok,
                "task": serialize_task(r.task) if r.task else None,
                "error": r.error,
            }
            for r in results
        ],
        "succeeded": sum(1 for r in results if r.ok),
        "failed": sum(1 for r in results if not r.ok),
    }


@router.post("/api/tasks/{task_id}/start")
async def start_task(
    task_id: str,
    actor_id: str = Depends(get_actor_id),
    service: TaskLifecycleService = Depends(get_lifecycle_service),
):
    return serialize_task(await service.start(task_id, actor_id))


@router.post("/api/tasks/{task_id}/submit-review")
async def submit_review(
    task_id: str,
    actor_id: str = Depends(get_actor_id),
    service: TaskLifecycleService = Depends(get_lifecycle_service),
):
    return serialize_task(await service.submit_review(task_id, actor_id))


@router.post("/api/tasks/{task_id}/approve")
async def approve_task(
    task_id: str,
    actor_id: str = Depends(get_actor_id),
    service: TaskLifecycleService = Depends(get_lifecycle_service),
):
    return serialize_task(await service.approve(task_id, actor_id))


@router.post("/api/tasks/{task_id}/reject")
async def reject_task(
    task_id: str,
    body: RejectRequest | None = None,
    actor_id: str = Depends(get_actor_id),
    service: TaskLifecycleService = Depends(get_lifecycle_service),
):
    """审核退回，可附带 reason"""
    reason = body.reason if body else ""
    return serialize_task(await service.reject(task_id, actor_id, reason=reason))


@router.post("/api/tasks/{task_id}/complete")
async def complete_task(
    task_id: str,
    actor_id: str = Depends(get_actor_id),
    service: TaskLifecycleService = Depends(get_lifecycle_service),
):
    return serialize_task(await service.complete(task_id, actor_id))


@router.post("/api/tasks/{task_id}/reopen")
async def reopen_task(
    task_id: str,
    actor_id: str = Depends(get_actor_id),
    service: TaskLifecycleService = Depends(get_lifecycle_service),
):
    return serialize_task(await service.reopen(task_id, actor_id))


@router.patch("/api/tasks/{task_id}/status")
async def change_status(
    task_id: str,
    body: StatusChangeRequest,
    actor_id: str = Depends(get_actor_id),
    service: TaskLifecycleService = Depends(get_lifecycle_service),
):
    """通用状态变更：仍受流转表约束；关闭时返回 410 USE_ACTION_ENDPOINT"""
    task = await service.change_status(task_id, body.status, actor_id, reason=body.reason)
    return serialize_task(task)
