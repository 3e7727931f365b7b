"""TaskFlow Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import EventType, TaskAction, TaskStatus
from .event import Event
from .payloads import StateTransitionPayload, TaskCreatedPayload, TaskUpdatedPayload
from .requests import (
    BatchStatusRequest,
    RejectRequest,
    StatusChangeRequest,
    TaskCreateRequest,
    TaskUpdateRequest,
)
from .task import Task, TaskPointers

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskAction",
    "EventType",
    # Task
    "Task",
    "TaskPointers",
    # Event
    "Event",
    # Payloads
    "TaskCreatedPayload",
    "StateTransitionPayload",
    "TaskUpdatedPayload",
    # Requests
    "TaskCreateRequest",
    "TaskUpdateRequest",
    "StatusChangeRequest",
    "RejectRequest",
    "BatchStatusRequest",
]
