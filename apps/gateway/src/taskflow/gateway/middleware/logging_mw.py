"""LoggingMiddleware -- 请求级日志上下文

为每个 HTTP 请求确定 request_id 与 actor_id，绑定到 structlog contextvars。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

REQUEST_ID_HEADER = "X-Request-ID"
ACTOR_ID_HEADER = "X-Actor-Id"


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件

    沿用客户端传入的 X-Request-ID，否则生成 ULID。
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(ULID())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        if actor_id := request.headers.get(ACTOR_ID_HEADER):
            structlog.contextvars.bind_contextvars(actor_id=actor_id)

        log = structlog.get_logger()
        await log.ainfo("request_started")

        response = await call_next(request)

        await log.ainfo(
            "request_completed",
            status_code=response.status_code,
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
