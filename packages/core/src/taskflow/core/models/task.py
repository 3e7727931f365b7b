"""Task Domain Model

tasks 表是 events 的物化视图（projection），
status 字段只能经由 TransitionGuard 写入。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import TaskStatus


class TaskPointers(BaseModel):
    """Task 指针信息"""

    latest_event_id: str | None = Field(default=None, description="最新事件 ID")


class Task(BaseModel):
    """Task 数据模型

    新建任务（包括子任务）的状态恒为 todo。
    """

    task_id: str = Field(description="唯一标识，ULID 格式")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="当前状态")
    title: str = Field(description="任务标题")
    description: str = Field(default="", description="任务描述")
    parent_id: str | None = Field(default=None, description="父任务 ID（拆解出的子任务）")
    completed_at: datetime | None = Field(default=None, description="进入 done 的时间")
    pointers: TaskPointers = Field(default_factory=TaskPointers, description="指针信息")
