"""Event Payload 子类型

所有审计事件的结构化 payload 定义。
"""

from pydantic import BaseModel, Field

from .enums import TaskAction, TaskStatus


class TaskCreatedPayload(BaseModel):
    """TASK_CREATED 事件 payload"""

    title: str
    description: str = ""
    parent_id: str | None = None
    status: TaskStatus = TaskStatus.TODO


class StateTransitionPayload(BaseModel):
    """STATE_TRANSITION 事件 payload"""

    from_status: TaskStatus
    to_status: TaskStatus
    action: TaskAction = Field(default=TaskAction.CHANGE_STATUS)
    reason: str = Field(default="")
    description: str = Field(default="", description="人类可读的变更描述")


class TaskUpdatedPayload(BaseModel):
    """TASK_UPDATED 事件 payload（通用字段更新，不含 status）"""

    changes: dict[str, str | None] = Field(default_factory=dict)
