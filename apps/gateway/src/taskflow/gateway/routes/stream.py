"""SSE 事件流路由

GET /api/stream/task/{task_id}: SSE 实时推送指定任务的审计事件。
先推送历史事件，再推送实时新事件；支持 Last-Event-ID 断线重连与心跳保活。
"""

import asyncio
import json

from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse
from taskflow.core.config import SSE_HEARTBEAT_INTERVAL
from taskflow.core.exceptions import TaskNotFoundError
from taskflow.core.models.event import Event

from ..deps import get_sse_hub, get_store_group

router = APIRouter()


def _event_to_sse(event: Event) -> dict:
    """将 Event 模型转换为 SSE 消息"""
    data = {
        "event_id": event.event_id,
        "task_id": event.task_id,
        "task_seq": event.task_seq,
        "ts": event.ts.isoformat(),
        "type": event.type.value,
        "actor_id": event.actor_id,
        "payload": event.payload,
    }
    return {
        "id": event.event_id,
        "event": event.type.value,
        "data": json.dumps(data, ensure_ascii=False),
    }


@router.get("/api/stream/task/{task_id}")
async def stream_task_events(
    task_id: str,
    request: Request,
    store_group=Depends(get_store_group),
    sse_hub=Depends(get_sse_hub),
):
    """SSE 事件流端点"""
    task = await store_group.task_store.get_task(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)

    last_event_id = request.headers.get("last-event-id")

    async def event_generator():
        # 先订阅再读历史，避免两者之间的事件丢失
        queue = await sse_hub.subscribe(task_id)
        try:
            if last_event_id:
                history = await store_group.event_store.get_events_after(
                    task_id, last_event_id
                )
            else:
                history = await store_group.event_store.get_events_for_task(task_id)

            sent = set()
            for event in history:
                sent.add(event.event_id)
                yield _event_to_sse(event)

            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=SSE_HEARTBEAT_INTERVAL)
                except TimeoutError:
                    yield {"comment": "heartbeat"}
                    continue
                if event.event_id in sent:
                    continue
                yield _event_to_sse(event)
        finally:
            await sse_hub.unsubscribe(task_id, queue)

    return EventSourceResponse(event_generator())
