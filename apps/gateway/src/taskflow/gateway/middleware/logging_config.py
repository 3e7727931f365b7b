"""structlog 配置模块

dev 模式：ConsoleRenderer 彩色输出
json 模式：每行一个 JSON 对象，异常栈展开为字符串

所有日志条目带 service 字段；uvicorn 的访问日志与 LoggingMiddleware 的
request_completed 重复，统一降到 WARNING。
"""

import logging
import os

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

LOG_FORMAT_ENV = "TASKFLOW_LOG_FORMAT"
LOG_LEVEL_ENV = "TASKFLOW_LOG_LEVEL"
SERVICE_NAME = "taskflow-gateway"

# 由 LoggingMiddleware 覆盖的第三方 logger
_QUIET_LOGGERS = ("uvicorn.access",)


def add_service_name(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _resolve_level(log_level: str | None) -> int:
    name = (log_level or os.environ.get(LOG_LEVEL_ENV, "INFO")).upper()
    return getattr(logging, name, logging.INFO)


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """初始化 structlog 与标准库 logging

    Args:
        log_format: "json" 或 "dev"；None 时读 TASKFLOW_LOG_FORMAT（默认 dev）
        log_level: 日志级别名；None 时读 TASKFLOW_LOG_LEVEL（默认 INFO），
            无法识别的级别按 INFO 处理
    """
    log_format = log_format or os.environ.get(LOG_FORMAT_ENV, "dev")
    level = _resolve_level(log_level)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_service_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    render_chain: list[Processor]
    if log_format == "json":
        render_chain = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        render_chain = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *render_chain,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
