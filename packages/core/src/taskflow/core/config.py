"""配置模块 -- 可通过环境变量覆盖

路径类配置使用 getter 函数；状态机运行参数由 LifecycleConfig 承载，
通过 load_lifecycle_config() 从环境变量加载。
"""

import os
from pathlib import Path
from typing import Literal

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKFLOW_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TASKFLOW_DB_PATH",
        str(_get_base_dir() / "sqlite" / "taskflow.db"),
    )


# 单次批量状态变更的最大任务数
BATCH_MAX_SIZE: int = int(os.environ.get("TASKFLOW_BATCH_MAX_SIZE", "100"))

# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(
    os.environ.get("TASKFLOW_SSE_HEARTBEAT_INTERVAL", "15")
)


class LifecycleConfig(BaseModel):
    """状态流转引擎配置

    环境变量:
        TASKFLOW_TRANSITION_TIMEOUT_S: 单次状态写入超时（秒，默认 5）
        TASKFLOW_BATCH_CONCURRENCY: 批量变更并发度（默认 8）
        TASKFLOW_CREATION_STATUS_POLICY: 创建时携带非 todo 状态的处理策略
        TASKFLOW_ENABLE_STATUS_ENDPOINT: 是否开放通用状态变更接口
        TASKFLOW_EVENT_HISTORY_LIMIT: 事件历史默认返回条数
    """

    transition_timeout_s: float = Field(
        default=5.0,
        gt=0,
        description="状态写入超时（秒），超时抛出 TransitionTimeoutError",
    )
    batch_concurrency: int = Field(
        default=8,
        ge=1,
        description="批量变更的最大并发数",
    )
    creation_status_policy: Literal["override", "reject"] = Field(
        default="override",
        description="override: 忽略并记录告警；reject: 直接拒绝",
    )
    enable_status_endpoint: bool = Field(
        default=True,
        description="PATCH /api/tasks/{task_id}/status 是否可用",
    )
    event_history_limit: int = Field(
        default=20,
        ge=1,
        description="事件历史默认返回条数",
    )


def _read_number(env_var: str, cast, fallback):
    """读取数值型环境变量，非法值记录告警并回退默认值"""
    val = os.environ.get(env_var)
    if not val:
        return None
    try:
        return cast(val)
    except ValueError:
        log.warning(
            "invalid_lifecycle_config",
            env_var=env_var,
            value=val,
            fallback=fallback,
        )
        return None


def load_lifecycle_config() -> LifecycleConfig:
    """从环境变量加载 LifecycleConfig

    环境变量映射:
        TASKFLOW_TRANSITION_TIMEOUT_S -> transition_timeout_s (默认 5.0)
        TASKFLOW_BATCH_CONCURRENCY -> batch_concurrency (默认 8)
        TASKFLOW_CREATION_STATUS_POLICY -> creation_status_policy (默认 "override")
        TASKFLOW_ENABLE_STATUS_ENDPOINT -> enable_status_endpoint (默认 true)
        TASKFLOW_EVENT_HISTORY_LIMIT -> event_history_limit (默认 20)
    """
    kwargs: dict = {}

    timeout_s = _read_number("TASKFLOW_TRANSITION_TIMEOUT_S", float, 5.0)
    if timeout_s is not None:
        kwargs["transition_timeout_s"] = timeout_s

    concurrency = _read_number("TASKFLOW_BATCH_CONCURRENCY", int, 8)
    if concurrency is not None:
        kwargs["batch_concurrency"] = concurrency

    history_limit = _read_number("TASKFLOW_EVENT_HISTORY_LIMIT", int, 20)
    if history_limit is not None:
        kwargs["event_history_limit"] = history_limit

    if val := os.environ.get("TASKFLOW_CREATION_STATUS_POLICY"):
        kwargs["creation_status_policy"] = val.lower()

    if val := os.environ.get("TASKFLOW_ENABLE_STATUS_ENDPOINT"):
        kwargs["enable_status_endpoint"] = val.lower() not in ("false", "0", "no")

    return LifecycleConfig(**kwargs)
