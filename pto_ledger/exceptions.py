import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int
    context: dict[str, Any] | None = None


class AppError(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.context = context
        super().__init__(self.message)


class InsufficientBalanceError(AppError):
    """A strict usage deduction would drive a balance below zero."""

    def __init__(self, field: str, available: object, requested: object) -> None:
        super().__init__(
            f"Insufficient balance in {field}. Available: {available} hours",
            status_code=status.HTTP_409_CONFLICT,
            context={"field": field, "available": str(available), "requested": str(requested)},
        )


class NegativeResultError(AppError):
    """A signed adjustment would leave a balance negative."""

    def __init__(self, field: str, current: object, delta: object) -> None:
        super().__init__(
            f"Adjustment would result in negative balance. Current: {current} hours",
            status_code=status.HTTP_409_CONFLICT,
            context={"field": field, "current": str(current), "delta": str(delta)},
        )


class InvalidAmountError(AppError):
    """An amount is zero or negative where that is not allowed."""

    def __init__(self, message: str, amount: object) -> None:
        super().__init__(
            message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            context={"amount": str(amount)},
        )


class UnknownEmployeeError(AppError):
    """One or more referenced employees do not exist."""

    def __init__(self, employee_ids: list[Any]) -> None:
        super().__init__(
            "Employee not found",
            status_code=status.HTTP_404_NOT_FOUND,
            context={"employee_ids": [str(e) for e in employee_ids]},
        )


class EmployeeInactiveError(AppError):
    """One or more referenced employees are deactivated."""

    def __init__(self, employee_ids: list[Any]) -> None:
        super().__init__(
            "Employee is inactive",
            status_code=status.HTTP_409_CONFLICT,
            context={"employee_ids": [str(e) for e in employee_ids]},
        )


class NothingToClearError(AppError):
    """Every balance field in the requested scope is already zero."""

    def __init__(self, scope: str) -> None:
        super().__init__(
            f"No {scope} balance to clear",
            status_code=status.HTTP_409_CONFLICT,
            context={"scope": scope},
        )


class TransactionConflictError(AppError):
    """Concurrent writers kept conflicting after the retry budget was spent."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            "Concurrent update conflict, please retry",
            status_code=status.HTTP_409_CONFLICT,
            context={"attempts": attempts},
        )


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
            context=exc.context,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="InternalServerError",
            detail="An unexpected error occurred",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_exception_handler)
