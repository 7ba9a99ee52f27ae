from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Unauthorized"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Forbidden"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    message = "Conflict"


class ValidationFailure(AppError):
    status_code = 422
    message = "Validation failed"


class UpstreamQuotaExceeded(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    message = "AI Quota exceeded. Please try again in a few minutes."


class UpstreamUnavailable(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    message = "AI service is currently unavailable."


class PersistenceFailure(AppError):
    message = "Database operation failed"


def _error_response(status_code: int, message: str, details: Any = None) -> JSONResponse:
    body = {"error": message}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI):
    """Render every failure as a JSON body of the form {"error": ...}."""

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        details = [
            {"loc": list(err.get("loc", [])), "msg": err.get("msg")}
            for err in exc.errors()
        ]
        return _error_response(422, ValidationFailure.message, details)

    @app.exception_handler(IntegrityError)
    async def handle_integrity_error(request: Request, exc: IntegrityError):
        print(f"❌ Integrity error on {request.url.path}: {exc.orig}")
        return _error_response(Conflict.status_code, Conflict.message)

    @app.exception_handler(SQLAlchemyError)
    async def handle_db_error(request: Request, exc: SQLAlchemyError):
        print(f"❌ Database error on {request.url.path}: {exc}")
        return _error_response(PersistenceFailure.status_code, PersistenceFailure.message)
