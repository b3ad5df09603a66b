"""
业务异常与统一错误响应

所有接口错误统一为 {"error": ..., "code": ...}，表单校验额外带 fields。
"""

import logging
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """可映射为HTTP响应的业务异常"""
    status_code = 500
    code = "SERVER_ERROR"

    def __init__(self, code: Optional[str] = None, message: Optional[str] = None):
        if code:
            self.code = code
        self.message = message or self.code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class UnauthenticatedError(AppError):
    status_code = 401
    code = "UNAUTHENTICATED"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class BadRequestError(AppError):
    status_code = 400
    code = "BAD_REQUEST"


class FormValidationError(AppError):
    """表单校验失败，fields 为 字段 -> 错误信息"""
    status_code = 422
    code = "VALIDATION"

    def __init__(self, fields: Dict[str, str], message: str = "VALIDATION"):
        super().__init__(message=message)
        self.fields = fields

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["fields"] = self.fields
        return data


class UploadError(AppError):
    """上传校验失败：FILE_TOO_LARGE / INVALID_MIME / INVALID_EXT / FILE_REQUIRED"""
    status_code = 400


class UnsupportedMediaTypeError(AppError):
    status_code = 415
    code = "UNSUPPORTED_MEDIA_TYPE"


def validation_fields(exc: RequestValidationError) -> Dict[str, str]:
    """把 pydantic 错误列表压成 字段 -> 第一条错误信息"""
    fields: Dict[str, str] = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        key = loc[-1] if loc else "body"
        fields.setdefault(key, err.get("msg", "invalid"))
    return fields


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} 失败: {exc.code}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "VALIDATION", "code": "VALIDATION", "fields": validation_fields(exc)},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"{request.method} {request.url.path} 未处理异常: {exc}")
    return JSONResponse(status_code=500, content={"error": "SERVER_ERROR", "code": "SERVER_ERROR"})


def install_exception_handlers(app: FastAPI) -> None:
    """注册统一异常处理"""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
