"""HTTP 错误处理

ApiError 及其子类由路由/服务抛出，统一转换为：
    {"status": "error", "statusCode": <int>, "message": <str>}
请求校验失败映射为 400（附 errors 列表），未预期异常映射为 500。
"""

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse

log = structlog.get_logger()


class ApiError(Exception):
    """带 HTTP 状态码的业务异常"""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class NotFoundError(ApiError):
    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(404, message)


class BadRequestError(ApiError):
    def __init__(self, message: str = "Invalid request") -> None:
        super().__init__(400, message)


def _error_body(status_code: int, message: str, **extra) -> dict:
    return {"status": "error", "statusCode": status_code, "message": message, **extra}


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    await log.awarning(
        "api_error",
        status_code=exc.status_code,
        message=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.status_code, exc.message),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    await log.awarning("request_validation_failed", errors=errors)
    return JSONResponse(
        status_code=400,
        content=_error_body(400, "Validation failed", errors=errors),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = f"Path '{request.url.path}' not found"
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.status_code, message),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    await log.aerror(
        "unexpected_error",
        error_type=type(exc).__name__,
        error=str(exc),
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content=_error_body(500, "Internal server error"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """注册全部异常处理器"""
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
