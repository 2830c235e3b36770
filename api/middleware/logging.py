"""
请求/响应日志中间件
记录每个 HTTP 请求的方法、路径、状态码、耗时与传输字节数
"""
import json
import time
from typing import Any, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from core.config import settings
from core.logging_config import get_logger


logger = get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    日志记录中间件

    文件内容（multipart 与二进制响应）从不写入日志，只记录大小。
    JSON 请求体仅在开启时按上限截断记录。
    """

    SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.log_body: bool = settings.LOG_REQUEST_BODY_ENABLE_BY_DEFAULT
        self.max_body_bytes: int = settings.LOG_REQUEST_BODY_MAX_BYTES

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        request_info = await self._request_info(request)
        logger.info("request_started", **request_info)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration=round(time.perf_counter() - start_time, 4),
                error=str(exc),
                error_type=type(exc).__name__,
                **request_info,
                exc_info=True,
            )
            raise

        duration = time.perf_counter() - start_time
        self._log_response(response, duration, request_info)
        response.headers["X-Process-Time"] = f"{duration:.3f}"
        return response

    async def _request_info(self, request: Request) -> dict:
        info: dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
        }
        if request.query_params:
            info["query_params"] = dict(request.query_params)

        length = _content_length(request.headers.get("content-length"))
        if length is not None:
            info["request_bytes"] = length

        if request.method in ("POST", "PUT", "PATCH") and self._should_log_body(request):
            body = await self._json_body(request)
            if body is not None:
                info["body"] = body
        return info

    def _should_log_body(self, request: Request) -> bool:
        header = (request.headers.get("X-Log-Body") or "").lower()
        if header in {"true", "1", "yes"}:
            return True
        if header in {"false", "0", "no"}:
            return False
        return bool(self.log_body and settings.DEBUG)

    async def _json_body(self, request: Request) -> Optional[Any]:
        content_type = request.headers.get("content-type", "").lower()
        if "application/json" not in content_type:
            return None
        body = await request.body()
        snippet = body[: self.max_body_bytes].decode("utf-8", errors="ignore")
        try:
            return json.loads(snippet)
        except ValueError:
            return snippet

    def _log_response(self, response: Response, duration: float, request_info: dict) -> None:
        status_code = response.status_code
        log_data = {
            "status_code": status_code,
            "duration": round(duration, 4),
            **request_info,
        }
        length = _content_length(response.headers.get("content-length"))
        if length is not None:
            log_data["response_bytes"] = length

        if status_code < 400:
            logger.info("request_completed", **log_data)
        elif status_code < 500:
            logger.warning("request_client_error", **log_data)
        else:
            logger.error("request_server_error", **log_data)


def _content_length(value: Optional[str]) -> Optional[int]:
    if value and value.isdigit():
        return int(value)
    return None
