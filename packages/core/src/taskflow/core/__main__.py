"""CLI 入口模块 -- python -m taskflow.core <command>

支持的命令：
  rebuild-projections  从 events 表重建 tasks 表
  transitions          打印状态流转表
"""

import asyncio
import sys

from .config import get_db_path
from .models.enums import TaskStatus
from .state_machine import ACTION_RULES, label, permitted_targets

_USAGE = """用法: python -m taskflow.core <command>
命令:
  rebuild-projections  从 events 表重建 tasks 表
  transitions          打印状态流转表"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    command = sys.argv[1]

    if command == "rebuild-projections":
        asyncio.run(rebuild_projections())
    elif command == "transitions":
        print_transitions()
    else:
        print(f"未知命令: {command}")
        print("可用命令: rebuild-projections, transitions")
        sys.exit(1)


def print_transitions() -> None:
    """打印每个状态的可选目标与命名动作"""
    for status in TaskStatus:
        targets = ", ".join(
            f"{label(t)}({t.value})" for t in sorted(permitted_targets(status))
        )
        print(f"{label(status)}({status.value}) -> {targets}")
    print()
    for action, (from_status, to_status) in ACTION_RULES.items():
        print(f"{action.value}: {from_status.value} -> {to_status.value}")


async def rebuild_projections() -> None:
    """执行 Projection 重建"""
    from .projection import rebuild_all
    from .store import create_store_group

    db_path = get_db_path()

    print(f"数据库路径: {db_path}")
    print("开始重建 Projection...")

    store_group = await create_store_group(db_path)

    try:
        event_count = await rebuild_all(
            store_group.conn,
            store_group.event_store,
            store_group.task_store,
        )
        print(f"重建完成，处理 {event_count} 条事件")
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
