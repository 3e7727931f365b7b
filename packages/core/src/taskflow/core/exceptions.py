"""TaskFlow 异常体系

每个异常携带稳定的错误码（code）与建议的 HTTP 状态码（status_code），
gateway 层统一转换为 {"error": {"code", "message", ...}} 响应体。
"""

from typing import Any


class TaskFlowError(Exception):
    """TaskFlow 基础异常"""

    code: str = "TASKFLOW_ERROR"
    status_code: int = 500

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 调用方是否可通过修正请求或重试恢复
        """
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable

    def details(self) -> dict[str, Any]:
        """附加到错误响应体的结构化字段"""
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details()}


class IllegalTransitionError(TaskFlowError):
    """请求的状态流转不在流转表中"""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, from_status: str, to_status: str, message: str = "") -> None:
        super().__init__(
            message or f"Cannot transition from {from_status} to {to_status}",
            recoverable=True,
        )
        self.from_status = from_status
        self.to_status = to_status

    def details(self) -> dict[str, Any]:
        return {"from_status": self.from_status, "to_status": self.to_status}


class ForbiddenFieldError(TaskFlowError):
    """通用更新试图修改受保护字段（status）"""

    code = "FORBIDDEN_FIELD"
    status_code = 400

    def __init__(self, field: str) -> None:
        super().__init__(
            f"Field '{field}' cannot be changed through a generic update; "
            "use the task action endpoints instead",
            recoverable=True,
        )
        self.field = field

    def details(self) -> dict[str, Any]:
        return {"field": self.field}


class InvalidInitialStatusError(TaskFlowError):
    """创建任务时指定了非 todo 状态（creation_status_policy=reject）"""

    code = "INVALID_INITIAL_STATUS"
    status_code = 400

    def __init__(self, value: str) -> None:
        super().__init__(
            f"New tasks always start as todo, got initial status {value!r}",
            recoverable=True,
        )
        self.value = value

    def details(self) -> dict[str, Any]:
        return {"value": self.value}


class InvalidStatusError(TaskFlowError):
    """状态值不在四种状态之内 -- 数据完整性问题，按服务端错误处理"""

    code = "INVALID_STATUS"
    status_code = 500

    def __init__(self, value: object) -> None:
        super().__init__(f"Unknown task status: {value!r}", recoverable=False)
        self.value = value

    def details(self) -> dict[str, Any]:
        return {"value": str(self.value)}


class ConcurrentModificationError(TaskFlowError):
    """条件写入失败：任务状态已被并发请求修改

    调用方应重新读取任务状态后再决定是否重试，核心不自动重试。
    """

    code = "CONCURRENT_MODIFICATION"
    status_code = 409

    def __init__(self, task_id: str, expected_status: str) -> None:
        super().__init__(
            f"Task {task_id} is no longer in status {expected_status}",
            recoverable=True,
        )
        self.task_id = task_id
        self.expected_status = expected_status

    def details(self) -> dict[str, Any]:
        return {"task_id": self.task_id, "expected_status": self.expected_status}


class TaskNotFoundError(TaskFlowError):
    """任务不存在"""

    code = "TASK_NOT_FOUND"
    status_code = 404

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task with id {task_id} does not exist", recoverable=False)
        self.task_id = task_id


class ParentTaskNotFoundError(TaskFlowError):
    """父任务不存在"""

    code = "PARENT_TASK_NOT_FOUND"
    status_code = 404

    def __init__(self, parent_id: str) -> None:
        super().__init__(f"Parent task {parent_id} does not exist", recoverable=True)
        self.parent_id = parent_id


class TransitionTimeoutError(TaskFlowError):
    """持久化写入超时"""

    code = "TRANSITION_TIMEOUT"
    status_code = 504

    def __init__(self, task_id: str, timeout_s: float) -> None:
        super().__init__(
            f"Status write for task {task_id} timed out after {timeout_s}s",
            recoverable=True,
        )
        self.task_id = task_id
        self.timeout_s = timeout_s


class StatusEndpointDisabledError(TaskFlowError):
    """通用状态变更接口已关闭"""

    code = "USE_ACTION_ENDPOINT"
    status_code = 410

    def __init__(self) -> None:
        super().__init__(
            "Generic status changes are disabled; use "
            "start/submit-review/approve/reject/complete/reopen",
            recoverable=True,
        )
