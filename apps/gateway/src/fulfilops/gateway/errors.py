"""异常处理器 -- 引擎异常 -> 统一错误响应体

响应格式：{"error": {"code": ..., "message": ...}}，
校验错误附带 details，状态冲突附带 cascade_incomplete。
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fulfilops.core.exceptions import FulfilOpsError, InvalidStateError, ValidationError
from starlette.responses import JSONResponse

log = structlog.get_logger()


def error_body(code: str, message: str, **extra) -> dict:
    """构造错误响应体"""
    error = {"code": code, "message": message}
    error.update({k: v for k, v in extra.items() if v is not None})
    return {"error": error}


async def handle_fulfilops_error(request: Request, exc: FulfilOpsError) -> JSONResponse:
    extra: dict = {}
    if isinstance(exc, ValidationError) and exc.details:
        extra["details"] = exc.details
    if isinstance(exc, InvalidStateError):
        extra["cascade_incomplete"] = exc.cascade_incomplete

    if exc.http_status >= 500:
        log.error("request_failed", code=exc.code, error=exc.message)
    else:
        log.info("request_rejected", code=exc.code, error=exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content=error_body(exc.code, exc.message, **extra),
    )


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = {
        ".".join(str(p) for p in err.get("loc", ())): err.get("msg", "")
        for err in exc.errors()
    }
    return JSONResponse(
        status_code=400,
        content=error_body("VALIDATION_ERROR", "Invalid request", details=details),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """注册异常处理器"""
    app.add_exception_handler(FulfilOpsError, handle_fulfilops_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
