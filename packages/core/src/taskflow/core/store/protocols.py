"""Store / AuditTrail Protocol 接口定义

使用 Python Protocol 实现结构化子类型（duck typing），
核心只依赖这些接口，不依赖具体的 SQLite 实现。
"""

from typing import Protocol

from ..models.enums import TaskStatus
from ..models.event import Event
from ..models.task import Task


class TaskStore(Protocol):
    """Task 存储接口"""

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        ...

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        ...

    async def list_tasks(
        self,
        status: str | None = None,
        parent_id: str | None = None,
    ) -> list[Task]:
        """查询任务列表"""
        ...

    async def conditional_update_status(
        self,
        task_id: str,
        expected_from: TaskStatus,
        to_status: TaskStatus,
        updated_at: str,
        latest_event_id: str,
    ) -> bool:
        """仅当当前状态等于 expected_from 时写入新状态，返回是否生效"""
        ...


class EventStore(Protocol):
    """Event 存储接口

    事件表 append-only：只允许插入，不允许更新或删除。
    """

    async def append_event(self, event: Event) -> None:
        """追加事件（append-only）"""
        ...

    async def get_events_for_task(
        self,
        task_id: str,
        limit: int | None = None,
    ) -> list[Event]:
        """查询指定任务的事件"""
        ...

    async def get_next_task_seq(self, task_id: str) -> int:
        """获取指定任务的下一个 task_seq（MAX+1）"""
        ...


class AuditTrail(Protocol):
    """审计事件接收方

    每次成功的非恒等状态流转恰好收到一条事件。
    实现不得阻塞或回滚状态流转，异常由调用方记录后忽略。
    """

    async def record(self, event: Event) -> None:
        """接收一条已落盘的审计事件"""
        ...
