"""
Structlog 日志配置模块

DEBUG 下使用彩色控制台输出，其余环境输出 JSON；标准库 logging
（uvicorn、botocore 等）经 ProcessorFormatter 汇入同一渲染链。
"""
import logging
import json
import structlog
from structlog.processors import TimeStamper, add_log_level, JSONRenderer
from structlog.dev import ConsoleRenderer
from structlog.contextvars import merge_contextvars
from structlog.stdlib import ProcessorFormatter
from typing import Any, List, Optional

from core.config import settings

# 第三方库日志过于冗长，统一压到 WARNING
_NOISY_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "PIL")


def _add_service_info(_, __, event_dict: dict) -> dict:
    event_dict.setdefault("service", settings.PROJECT_NAME)
    event_dict.setdefault("env", settings.ENVIRONMENT)
    return event_dict


def get_renderer() -> Any:
    """根据环境选择渲染器 (Console in DEBUG, JSON otherwise)."""
    if settings.DEBUG and not settings.LOG_JSON:
        return ConsoleRenderer(colors=True)

    def _dumps(obj, default=None, **kwargs):
        return json.dumps(obj, ensure_ascii=False, default=default, **kwargs)
    return JSONRenderer(serializer=_dumps)


def _resolve_level(level: Optional[str]) -> int:
    if level:
        value = logging.getLevelName(level.upper())
        if isinstance(value, int):
            return value
    return logging.DEBUG if settings.DEBUG else logging.INFO


def configure_logging(level: Optional[str] = None) -> None:
    """配置 structlog 并桥接标准库 logging 到同一处理链。

    Args:
        level: 日志级别名称，缺省读取 ``settings.LOG_LEVEL``
    """
    shared_pre_chain: List[Any] = [
        merge_contextvars,
        add_log_level,
        _add_service_info,
        TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *shared_pre_chain,
            ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = ProcessorFormatter(
        foreign_pre_chain=shared_pre_chain,
        processors=[
            ProcessorFormatter.remove_processors_meta,
            get_renderer(),
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_resolve_level(level or settings.LOG_LEVEL))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """获取 structlog logger 实例。"""
    return structlog.get_logger(name)
