"""任务路由

GET /api/tasks: 任务列表查询，支持 status / parent_id 筛选。
POST /api/tasks: 创建任务，初始状态恒为 todo。
GET /api/tasks/{task_id}: 任务详情，含可选流转与最近事件。
PATCH /api/tasks/{task_id}: 通用字段更新，不允许携带 status。
GET /api/tasks/{task_id}/events: 任务事件历史。
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from taskflow.core.models import Event, Task, TaskCreateRequest, TaskStatus
from taskflow.core.state_machine import label

from ..deps import get_actor_id, get_task_service
from ..services.task_service import TaskService

router = APIRouter()


def serialize_task(task: Task) -> dict[str, Any]:
    """Task -> 响应 JSON，附带状态显示名称"""
    data = task.model_dump(mode="json")
    data["status_label"] = label(task.status)
    return data


def serialize_event(event: Event) -> dict[str, Any]:
    return {
        "event_id": event.event_id,
        "task_seq": event.task_seq,
        "ts": event.ts.isoformat(),
        "type": event.type.value,
        "actor_id": event.actor_id,
        "payload": event.payload,
    }


@router.get("/api/tasks")
async def list_tasks(
    status: TaskStatus | None = Query(default=None, description="按状态筛选"),
    parent_id: str | None = Query(default=None, description="按父任务筛选"),
    service: TaskService = Depends(get_task_service),
):
    """查询任务列表，按 created_at 倒序"""
    tasks = await service.list_tasks(status, parent_id)
    return {"tasks": [serialize_task(t) for t in tasks]}


@router.post("/api/tasks", status_code=201)
async def create_task(
    body: TaskCreateRequest,
    actor_id: str = Depends(get_actor_id),
    service: TaskService = Depends(get_task_service),
):
    """创建任务；请求中的 status 按 creation_status_policy 忽略或拒绝"""
    task = await service.create_task(body, actor_id)
    return serialize_task(task)


@router.get("/api/tasks/{task_id}")
async def get_task_detail(
    task_id: str,
    service: TaskService = Depends(get_task_service),
):
    """查询任务详情，包含可选流转和最近事件"""
    task = await service.get_task(task_id)
    events = await service.get_task_events(task_id)
    return {
        "task": serialize_task(task),
        "available_transitions": service.available_transitions(task),
        "events": [serialize_event(e) for e in events],
    }


@router.patch("/api/tasks/{task_id}")
async def update_task(
    task_id: str,
    payload: dict[str, Any] = Body(...),
    actor_id: str = Depends(get_actor_id),
    service: TaskService = Depends(get_task_service),
):
    """通用字段更新；携带 status 时返回 400 FORBIDDEN_FIELD 且不写入任何字段"""
    try:
        task = await service.update_task(task_id, payload, actor_id)
    except ValidationError as e:
        raise RequestValidationError(e.errors()) from e
    return serialize_task(task)


@router.get("/api/tasks/{task_id}/events")
async def get_task_events(
    task_id: str,
    limit: int | None = Query(default=None, ge=1, le=1000),
    service: TaskService = Depends(get_task_service),
):
    """查询任务事件历史（按 task_seq 正序）"""
    events = await service.get_task_events(task_id, limit)
    return {"task_id": task_id, "events": [serialize_event(e) for e in events]}
