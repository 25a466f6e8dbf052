"""Erros de domínio e handlers HTTP.

Toda regra de agenda falha com uma subclasse de ``AppError``; a camada HTTP
converte para o envelope ``{"success": false, "error": {...}}``.
"""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.logging import get_logger


class AppError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "APP_ERROR"

    def __init__(self, message: str, field: str | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "field": self.field}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class LeadTimeError(ValidationError):
    """Antecedência mínima não atingida."""

    code = "INSUFFICIENT_NOTICE"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


def register_exception_handlers(app: FastAPI) -> None:
    """Attach shared exception handlers to the FastAPI app."""

    @app.exception_handler(AppError)
    async def _app_error_handler(request: Request, exc: AppError):
        get_logger().bind(
            path=request.url.path, code=exc.code, field=exc.field
        ).info("request.rejected")
        return JSONResponse(
            {"success": False, "error": exc.to_dict()},
            status_code=exc.status_code,
        )
