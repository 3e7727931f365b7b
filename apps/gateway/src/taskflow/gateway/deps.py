"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store / 服务实例

Store 与 SSEHub 通过 app.state 管理，在 lifespan 中初始化/清理；
TransitionGuard 与各服务按请求构造。
"""

from fastapi import Depends, Header, Request
from taskflow.core.config import LifecycleConfig
from taskflow.core.guard import TransitionGuard
from taskflow.core.store import StoreGroup

from .services.lifecycle_service import TaskLifecycleService
from .services.sse_hub import SSEHub
from .services.task_service import TaskService

DEFAULT_ACTOR_ID = "anonymous"


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_sse_hub(request: Request) -> SSEHub:
    """从 app.state 获取 SSEHub 实例"""
    return request.app.state.sse_hub


def get_lifecycle_config(request: Request) -> LifecycleConfig:
    """从 app.state 获取 LifecycleConfig 实例"""
    return request.app.state.lifecycle_config


def get_actor_id(x_actor_id: str | None = Header(default=None)) -> str:
    """X-Actor-Id 请求头标识操作者，缺省为 anonymous"""
    return x_actor_id or DEFAULT_ACTOR_ID


def get_transition_guard(
    store_group: StoreGroup = Depends(get_store_group),
    sse_hub: SSEHub = Depends(get_sse_hub),
    config: LifecycleConfig = Depends(get_lifecycle_config),
) -> TransitionGuard:
    """SSEHub 作为审计接收方注入 TransitionGuard"""
    return TransitionGuard(store_group, audit_trail=sse_hub, config=config)


def get_lifecycle_service(
    guard: TransitionGuard = Depends(get_transition_guard),
    config: LifecycleConfig = Depends(get_lifecycle_config),
) -> TaskLifecycleService:
    return TaskLifecycleService(guard, config)


def get_task_service(
    store_group: StoreGroup = Depends(get_store_group),
    guard: TransitionGuard = Depends(get_transition_guard),
    sse_hub: SSEHub = Depends(get_sse_hub),
    config: LifecycleConfig = Depends(get_lifecycle_config),
) -> TaskService:
    return TaskService(store_group, guard, sse_hub=sse_hub, config=config)
