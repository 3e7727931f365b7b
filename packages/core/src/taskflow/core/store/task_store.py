"""TaskStore SQLite 实现

tasks 表是 events 的物化视图（projection）。
status 列只通过 conditional_update_status 修改，写入条件包含期望的旧状态。
"""

import json
from datetime import datetime

import aiosqlite

from ..models.enums import TaskStatus
from ..models.task import Task, TaskPointers
from ..state_machine import parse_status

_COLUMNS = (
    "task_id, created_at, updated_at, status, title, description, "
    "parent_id, completed_at, pointers"
)


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现

    写方法不自动提交事务，需由调用方管理事务。
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def create_task(self, task: Task) -> None:
        """创建任务记录"""
        await self._conn.execute(
            f"""
            INSERT INTO tasks ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.task_id,
                task.created_at.isoformat(),
                task.updated_at.isoformat(),
                task.status.value,
                task.title,
                task.description,
                task.parent_id,
                task.completed_at.isoformat() if task.completed_at else None,
                task.pointers.model_dump_json(),
            ),
        )

    async def get_task(self, task_id: str) -> Task | None:
        """根据 task_id 查询任务"""
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def get_status(self, task_id: str) -> TaskStatus | None:
        """仅查询当前状态"""
        cursor = await self._conn.execute(
            "SELECT status FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return parse_status(row[0])

    async def list_tasks(
        self,
        status: str | None = None,
        parent_id: str | None = None,
    ) -> list[Task]:
        """查询任务列表，支持按状态/父任务筛选，按 created_at 倒序"""
        clauses: list[str] = []
        params: list[str] = []
        if status:
            clauses.append("status = ?")
            params.append(status)
        if parent_id:
            clauses.append("parent_id = ?")
            params.append(parent_id)

        sql = f"SELECT {_COLUMNS} FROM tasks"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC"

        cursor = await self._conn.execute(sql, tuple(params))
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def conditional_update_status(
        self,
        task_id: str,
        expected_from: TaskStatus,
        to_status: TaskStatus,
        updated_at: str,
        latest_event_id: str,
    ) -> bool:
        """条件更新状态：仅当当前状态等于 expected_from 时写入

        进入 done 时写入 completed_at，离开 done 时清空。

        Returns:
            True 如果写入生效（恰好命中一行）
        """
        if to_status == TaskStatus.DONE:
            completed_at: str | None = updated_at
        else:
            completed_at = None

        cursor = await self._conn.execute(
            """
            UPDATE tasks
            SET status = ?, updated_at = ?, completed_at = ?,
                pointers = json_set(pointers, '$.latest_event_id', ?)
            WHERE task_id = ? AND status = ?
            """,
            (
                to_status.value,
                updated_at,
                completed_at,
                latest_event_id,
                task_id,
                expected_from.value,
            ),
        )
        return cursor.rowcount == 1

    async def update_fields(
        self,
        task_id: str,
        changes: dict[str, str | None],
        updated_at: str,
        latest_event_id: str,
    ) -> None:
        """更新非状态字段（title / description）"""
        allowed = {"title", "description"}
        assignments = []
        params: list[str | None] = []
        for field, value in changes.items():
            if field not in allowed:
                raise ValueError(f"Field {field!r} is not updatable")
            assignments.append(f"{field} = ?")
            params.append(value)

        assignments.append("updated_at = ?")
        params.append(updated_at)
        assignments.append("pointers = json_set(pointers, '$.latest_event_id', ?)")
        params.append(latest_event_id)

        await self._conn.execute(
            f"UPDATE tasks SET {', '.join(assignments)} WHERE task_id = ?",
            (*params, task_id),
        )

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        pointers_data = json.loads(row[8])  # pointers 列
        return Task(
            task_id=row[0],
            created_at=datetime.fromisoformat(row[1]),
            updated_at=datetime.fromisoformat(row[2]),
            status=parse_status(row[3]),
            title=row[4],
            description=row[5],
            parent_id=row[6],
            completed_at=datetime.fromisoformat(row[7]) if row[7] else None,
            pointers=TaskPointers(**pointers_data),
        )
