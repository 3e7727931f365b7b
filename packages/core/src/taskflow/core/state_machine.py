"""任务状态机

定义任务状态的合法流转规则与显示名称。
VALID_TRANSITIONS 是流转规则的唯一来源：命名动作、通用状态接口、
批量接口都通过 can_transition 校验，不允许在其他位置另写规则。
"""

from collections.abc import Mapping

from .exceptions import InvalidStatusError
from .models.enums import TaskAction, TaskStatus

# 状态流转规则：从哪个状态可以转到哪些状态
VALID_TRANSITIONS: Mapping[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.TODO: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.IN_PROGRESS: frozenset(
        {TaskStatus.TODO, TaskStatus.REVIEW, TaskStatus.DONE}
    ),
    TaskStatus.REVIEW: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.DONE}),
    # 完成 -> 重新打开
    TaskStatus.DONE: frozenset({TaskStatus.IN_PROGRESS}),
}

# 状态显示名称
STATUS_LABELS: Mapping[TaskStatus, str] = {
    TaskStatus.TODO: "待办",
    TaskStatus.IN_PROGRESS: "进行中",
    TaskStatus.REVIEW: "审核中",
    TaskStatus.DONE: "已完成",
}

# 命名动作的固定 (from, to)
ACTION_RULES: Mapping[TaskAction, tuple[TaskStatus, TaskStatus]] = {
    TaskAction.START: (TaskStatus.TODO, TaskStatus.IN_PROGRESS),
    TaskAction.SUBMIT_REVIEW: (TaskStatus.IN_PROGRESS, TaskStatus.REVIEW),
    TaskAction.APPROVE: (TaskStatus.REVIEW, TaskStatus.DONE),
    TaskAction.REJECT: (TaskStatus.REVIEW, TaskStatus.IN_PROGRESS),
    TaskAction.COMPLETE: (TaskStatus.IN_PROGRESS, TaskStatus.DONE),
    TaskAction.REOPEN: (TaskStatus.DONE, TaskStatus.IN_PROGRESS),
}


def can_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """检查状态转换是否合法

    相同状态视为恒等转换，直接返回 True，不查表。

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    if from_status == to_status:
        return True
    return to_status in VALID_TRANSITIONS.get(from_status, frozenset())


def permitted_targets(from_status: TaskStatus) -> frozenset[TaskStatus]:
    """获取可转换的目标状态集合"""
    return VALID_TRANSITIONS.get(from_status, frozenset())


def label(status: TaskStatus | str) -> str:
    """获取状态显示名称，未登记时回退为原始值"""
    try:
        return STATUS_LABELS.get(TaskStatus(status), str(status))
    except ValueError:
        return str(status)


def parse_status(value: object) -> TaskStatus:
    """边界处的状态值转换

    Raises:
        InvalidStatusError: 状态值不在四种状态之内
    """
    if isinstance(value, TaskStatus):
        return value
    try:
        return TaskStatus(str(value))
    except ValueError:
        raise InvalidStatusError(value) from None


def describe_transition(from_status: TaskStatus, to_status: TaskStatus) -> str:
    """生成状态变更描述"""
    return f"将状态从「{label(from_status)}」变更为「{label(to_status)}」"


def describe_rejection(from_status: TaskStatus, to_status: TaskStatus) -> str:
    """生成非法流转的错误描述，附带可选目标"""
    available = ", ".join(label(s) for s in sorted(permitted_targets(from_status)))
    return (
        f"不能从「{label(from_status)}」转换到「{label(to_status)}」，"
        f"可选: {available}"
    )


def rule_for(action: TaskAction) -> tuple[TaskStatus, TaskStatus]:
    """获取命名动作的 (from, to)

    Raises:
        KeyError: CHANGE_STATUS 没有固定规则
    """
    return ACTION_RULES[action]
