"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + SSEHub + 配置加载 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from taskflow.core.config import get_db_path, load_lifecycle_config
from taskflow.core.exceptions import InvalidStatusError, TaskFlowError
from taskflow.core.store import create_store_group

from .middleware.logging_config import setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import actions, health, stream, tasks
from .services.sse_hub import SSEHub

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB，关闭时清理连接"""
    db_path = get_db_path()
    store_group = await create_store_group(db_path)
    app.state.store_group = store_group

    app.state.sse_hub = SSEHub()

    lifecycle_config = load_lifecycle_config()
    app.state.lifecycle_config = lifecycle_config
    log.info(
        "lifecycle_config_loaded",
        db_path=db_path,
        transition_timeout_s=lifecycle_config.transition_timeout_s,
        creation_status_policy=lifecycle_config.creation_status_policy,
        enable_status_endpoint=lifecycle_config.enable_status_endpoint,
    )

    yield

    if hasattr(app.state, "store_group") and app.state.store_group:
        await app.state.store_group.conn.close()


async def taskflow_error_handler(request: Request, exc: TaskFlowError) -> JSONResponse:
    """TaskFlowError -> {"error": {"code", "message", ...}}"""
    if isinstance(exc, InvalidStatusError):
        log.error("invalid_status_value", value=str(exc.value), path=request.url.path)
    else:
        log.info(
            "request_rejected",
            code=exc.code,
            status_code=exc.status_code,
            path=request.url.path,
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="TaskFlow Gateway",
        version="0.1.0",
        description="任务状态流转 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_logging()

    app.add_exception_handler(TaskFlowError, taskflow_error_handler)

    # batch-status 须先于 /api/tasks/{task_id} 系列注册
    app.include_router(actions.router, tags=["actions"])
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(stream.router, tags=["stream"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
