"""枚举定义

包含 TaskStatus、TaskAction、EventType 枚举。
合法流转表与校验函数位于 taskflow.core.state_machine。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态（与数据库保持一致，使用小写）"""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


class TaskAction(StrEnum):
    """状态变更动作

    每个业务动作对应固定的 (from, to) 组合，见 state_machine.ACTION_RULES。
    CHANGE_STATUS 仅用于通用状态接口和批量接口。
    """

    START = "start"
    SUBMIT_REVIEW = "submit_review"
    APPROVE = "approve"
    REJECT = "reject"
    COMPLETE = "complete"
    REOPEN = "reopen"
    CHANGE_STATUS = "change_status"


class EventType(StrEnum):
    """审计事件类型"""

    TASK_CREATED = "TASK_CREATED"
    STATE_TRANSITION = "STATE_TRANSITION"
    TASK_UPDATED = "TASK_UPDATED"
