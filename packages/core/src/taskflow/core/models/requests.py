"""入站请求模型

TaskUpdateRequest 结构上不含 status 字段（extra="forbid"），
通用更新路径无法表达状态变更。
"""

from pydantic import BaseModel, ConfigDict, Field

from ..config import BATCH_MAX_SIZE
from .enums import TaskStatus


class TaskCreateRequest(BaseModel):
    """创建任务请求

    status 仅为兼容旧客户端而接收，最终状态由
    TransitionGuard.enforce_creation_status 决定（恒为 todo）。
    """

    title: str = Field(min_length=1, max_length=200, description="任务标题")
    description: str = Field(default="", description="任务描述")
    parent_id: str | None = Field(default=None, description="父任务 ID")
    status: str | None = Field(default=None, description="被忽略或拒绝的初始状态")


class TaskUpdateRequest(BaseModel):
    """通用字段更新请求（不含 status）"""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None)

    def changes(self) -> dict[str, str | None]:
        """返回显式提交且非空的字段"""
        return self.model_dump(exclude_unset=True, exclude_none=True)


class StatusChangeRequest(BaseModel):
    """通用状态变更请求（PATCH /api/tasks/{task_id}/status）"""

    status: TaskStatus
    reason: str = Field(default="", max_length=500)


class RejectRequest(BaseModel):
    """审核退回请求"""

    reason: str = Field(default="", max_length=500)


class BatchStatusRequest(BaseModel):
    """批量状态变更请求"""

    task_ids: list[str] = Field(min_length=1, max_length=BATCH_MAX_SIZE)
    status: TaskStatus
