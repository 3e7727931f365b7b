"""SSEHub -- 内存中事件广播器

每个订阅者持有一个 asyncio.Queue，支持 subscribe/unsubscribe/broadcast。
同时实现 AuditTrail 协议（record），作为 TransitionGuard 的审计接收方。
"""

import asyncio
from collections import defaultdict

import structlog
from taskflow.core.models.event import Event

log = structlog.get_logger()


class SSEHub:
    """SSE 事件广播器 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, queue_maxsize: int = 100) -> None:
        # task_id -> set of asyncio.Queue
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    async def subscribe(self, task_id: str) -> asyncio.Queue:
        """订阅指定任务的事件流

        Returns:
            asyncio.Queue 实例，新事件会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers[task_id].add(queue)
        return queue

    async def unsubscribe(self, task_id: str, queue: asyncio.Queue) -> None:
        """取消订阅"""
        self._subscribers[task_id].discard(queue)
        if not self._subscribers[task_id]:
            del self._subscribers[task_id]

    def subscriber_count(self, task_id: str) -> int:
        return len(self._subscribers.get(task_id, ()))

    async def broadcast(self, task_id: str, event: Event) -> None:
        """向指定任务的所有订阅者广播事件

        队列已满的订阅者视为失联并被移除。
        """
        dead_queues = []
        for queue in self._subscribers.get(task_id, set()):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                dead_queues.append(queue)

        if dead_queues:
            log.warning(
                "sse_subscriber_dropped",
                task_id=task_id,
                dropped=len(dead_queues),
            )
        for q in dead_queues:
            self._subscribers[task_id].discard(q)
        if task_id in self._subscribers and not self._subscribers[task_id]:
            del self._subscribers[task_id]

    async def record(self, event: Event) -> None:
        """AuditTrail 接口：把审计事件推送给该任务的订阅者"""
        await self.broadcast(event.task_id, event)
