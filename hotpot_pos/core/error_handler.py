"""
统一错误处理
业务异常按错误码映射 HTTP 状态，响应体统一为
{"success": false, "error_code", "message", "details"}
"""

import json
import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from .database import DatabaseManager, db_manager
from .exceptions import BaseApplicationError

logger = logging.getLogger(__name__)

# 错误码 -> HTTP 状态码，未列出的业务错误按 400
ERROR_CODE_STATUS_MAP = {
    "VALIDATION_ERROR": 400,
    "INVALID_PICKUP_SLOT": 400,
    "AUTHENTICATION_REQUIRED": 401,
    "ORDER_NOT_FOUND": 404,
    "BOOKING_CLOSED": 409,
    "STORE_CLOSED": 409,
    "SLOT_CAPACITY_EXCEEDED": 409,
    "DAILY_LIMIT_EXCEEDED": 409,
    "INVALID_STATUS_TRANSITION": 409,
    "BUSINESS_RULE_VIOLATION": 422,
    "DATABASE_ERROR": 500,
    "INTERNAL_ERROR": 500,
    "CAPACITY_UNKNOWN": 503,
    "CONCURRENCY_ERROR": 503,
}


def error_response(status: int, error_code: str, message: str,
                   details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={
            "success": False,
            "error_code": error_code,
            "message": message,
            "details": details or {},
        },
    )


def status_for(error_code: str) -> int:
    return ERROR_CODE_STATUS_MAP.get(error_code, 400)


def record_system_error(db: DatabaseManager, error: Exception):
    """未预期的异常写入 logs 表（action=system_error）"""
    detail = {
        "type": type(error).__name__,
        "message": str(error),
        "traceback": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
    }
    try:
        db.execute_query(
            "INSERT INTO logs(actor, action, detail_json) VALUES (?,?,?)",
            [None, "system_error", json.dumps(detail, ensure_ascii=False)],
        )
    except BaseApplicationError:
        logger.error("failed to write system_error log row")


async def application_error_handler(request: Request, exc: BaseApplicationError) -> JSONResponse:
    if exc.error_code in ("DATABASE_ERROR", "CAPACITY_UNKNOWN"):
        logger.error("%s on %s: %s", exc.error_code, request.url.path, exc.message)
    return error_response(status_for(exc.error_code), exc.error_code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return error_response(exc.status_code, "HTTP_ERROR", str(exc.detail),
                          {"status_code": exc.status_code})


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """请求体/参数校验失败"""
    errors = exc.errors() if hasattr(exc, "errors") else str(exc)
    return error_response(422, "VALIDATION_ERROR", "請求參數驗證失敗",
                          {"validation_errors": json.loads(json.dumps(errors, default=str))})


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled error on %s", request.url.path, exc_info=exc)
    record_system_error(getattr(request.app.state, "db", db_manager), exc)
    return error_response(500, "INTERNAL_ERROR", "系統內部錯誤", {"error_type": type(exc).__name__})
