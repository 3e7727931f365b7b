"""状态机流转单元测试

测试内容：
1. 流转表内的组合全部通过，表外的全部拒绝
2. 相同状态恒等通过
3. 命名动作的 (from, to) 都是流转表中的边
4. 显示名称与描述文本
"""

import itertools

import pytest
from taskflow.core.exceptions import InvalidStatusError
from taskflow.core.models.enums import TaskAction, TaskStatus
from taskflow.core.state_machine import (
    ACTION_RULES,
    VALID_TRANSITIONS,
    can_transition,
    describe_rejection,
    describe_transition,
    label,
    parse_status,
    permitted_targets,
    rule_for,
)

TABLE_PAIRS = [
    (TaskStatus.TODO, TaskStatus.IN_PROGRESS),
    (TaskStatus.IN_PROGRESS, TaskStatus.TODO),
    (TaskStatus.IN_PROGRESS, TaskStatus.REVIEW),
    (TaskStatus.IN_PROGRESS, TaskStatus.DONE),
    (TaskStatus.REVIEW, TaskStatus.IN_PROGRESS),
    (TaskStatus.REVIEW, TaskStatus.DONE),
    (TaskStatus.DONE, TaskStatus.IN_PROGRESS),
]


class TestStateMachineTransitions:
    """状态机流转验证"""

    @pytest.mark.parametrize("from_status,to_status", TABLE_PAIRS)
    def test_valid_transition(self, from_status: TaskStatus, to_status: TaskStatus):
        """合法流转应通过验证"""
        assert can_transition(from_status, to_status) is True

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (TaskStatus.TODO, TaskStatus.DONE),
            (TaskStatus.TODO, TaskStatus.REVIEW),
            (TaskStatus.REVIEW, TaskStatus.TODO),
            (TaskStatus.DONE, TaskStatus.TODO),
            (TaskStatus.DONE, TaskStatus.REVIEW),
        ],
    )
    def test_invalid_transition(self, from_status: TaskStatus, to_status: TaskStatus):
        """非法流转应被拒绝"""
        assert can_transition(from_status, to_status) is False

    def test_every_pair_matches_table(self):
        """所有 4x4 组合：表内或恒等为 True，其余为 False"""
        for from_status, to_status in itertools.product(TaskStatus, TaskStatus):
            expected = from_status == to_status or (from_status, to_status) in TABLE_PAIRS
            assert can_transition(from_status, to_status) is expected, (
                f"{from_status} -> {to_status}"
            )

    @pytest.mark.parametrize("status", list(TaskStatus))
    def test_identity_transition(self, status: TaskStatus):
        assert can_transition(status, status) is True

    def test_table_covers_all_statuses(self):
        assert set(VALID_TRANSITIONS) == set(TaskStatus)

    def test_permitted_targets(self):
        assert permitted_targets(TaskStatus.IN_PROGRESS) == frozenset(
            {TaskStatus.TODO, TaskStatus.REVIEW, TaskStatus.DONE}
        )
        assert permitted_targets(TaskStatus.TODO) == frozenset({TaskStatus.IN_PROGRESS})


class TestActionRules:
    """命名动作规则"""

    @pytest.mark.parametrize("action", list(ACTION_RULES))
    def test_action_rule_is_table_edge(self, action: TaskAction):
        from_status, to_status = rule_for(action)
        assert to_status in VALID_TRANSITIONS[from_status]

    def test_change_status_has_no_fixed_rule(self):
        assert TaskAction.CHANGE_STATUS not in ACTION_RULES
        with pytest.raises(KeyError):
            rule_for(TaskAction.CHANGE_STATUS)

    def test_reject_goes_back_to_in_progress(self):
        assert rule_for(TaskAction.REJECT) == (TaskStatus.REVIEW, TaskStatus.IN_PROGRESS)


class TestLabels:
    def test_labels(self):
        assert label(TaskStatus.TODO) == "待办"
        assert label(TaskStatus.IN_PROGRESS) == "进行中"
        assert label(TaskStatus.REVIEW) == "审核中"
        assert label(TaskStatus.DONE) == "已完成"

    def test_unknown_label_falls_back_to_raw_value(self):
        assert label("archived") == "archived"

    def test_describe_transition(self):
        assert (
            describe_transition(TaskStatus.TODO, TaskStatus.IN_PROGRESS)
            == "将状态从「待办」变更为「进行中」"
        )

    def test_describe_rejection_lists_targets(self):
        message = describe_rejection(TaskStatus.TODO, TaskStatus.DONE)
        assert "「待办」" in message
        assert "「已完成」" in message
        assert "进行中" in message


class TestParseStatus:
    def test_parse_known_value(self):
        assert parse_status("review") is TaskStatus.REVIEW

    def test_parse_passthrough(self):
        assert parse_status(TaskStatus.DONE) is TaskStatus.DONE

    @pytest.mark.parametrize("value", ["archived", "TODO", "", None])
    def test_parse_unknown_raises(self, value):
        with pytest.raises(InvalidStatusError) as exc_info:
            parse_status(value)
        assert exc_info.value.code == "INVALID_STATUS"
        assert exc_info.value.recoverable is False
