"""Translation of failures into the uniform error envelope.

``map_exception`` is a pure function; ``handle_exception`` is the single
place that logs a failure and turns it into a response. It is registered for
the known failure kinds by ``register_exception_handlers`` and called by the
request middleware for anything that escapes them.
"""

from dataclasses import dataclass
from typing import Literal

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from loguru import logger
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from src.finstream.core.exceptions import PersistenceError, RequestError

REQUEST_ERROR = "Request Error"
DATABASE_ERROR = "Database Error"
INVALID_INPUT = "Invalid Input"
INTERNAL_ERROR = "Internal Server Error"

DATABASE_ERROR_MESSAGE = "Service temporarily unavailable"
INTERNAL_ERROR_MESSAGE = "An unexpected error occurred"


class ErrorResponse(BaseModel):
    error: str
    message: str


@dataclass(frozen=True)
class ErrorMapping:
    status_code: int
    body: ErrorResponse
    level: Literal["WARNING", "ERROR"]


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def map_exception(exc: Exception) -> ErrorMapping:
    """Map a failure to its status, body and log level. Most specific kind wins."""
    if isinstance(exc, RequestError):
        return ErrorMapping(
            exc.status_code, ErrorResponse(error=REQUEST_ERROR, message=exc.message), "ERROR"
        )
    if isinstance(exc, StarletteHTTPException):
        return ErrorMapping(
            exc.status_code,
            ErrorResponse(error=REQUEST_ERROR, message=str(exc.detail)),
            "ERROR",
        )
    if isinstance(exc, (PersistenceError, SQLAlchemyError)):
        return ErrorMapping(
            503,
            ErrorResponse(error=DATABASE_ERROR, message=DATABASE_ERROR_MESSAGE),
            "ERROR",
        )
    if isinstance(exc, RequestValidationError):
        return ErrorMapping(
            400,
            ErrorResponse(error=INVALID_INPUT, message=_validation_message(exc)),
            "WARNING",
        )
    if isinstance(exc, ValueError):
        return ErrorMapping(
            400, ErrorResponse(error=INVALID_INPUT, message=str(exc)), "WARNING"
        )
    return ErrorMapping(
        500,
        ErrorResponse(error=INTERNAL_ERROR, message=INTERNAL_ERROR_MESSAGE),
        "ERROR",
    )


async def handle_exception(request: Request, exc: Exception) -> JSONResponse:
    mapping = map_exception(exc)
    logger.opt(exception=exc).bind(
        status_code=mapping.status_code,
        error_type=type(exc).__name__,
    ).log(mapping.level, "{}: {}", mapping.body.error, request.url.path)

    headers = getattr(exc, "headers", None) or {}
    return JSONResponse(
        status_code=mapping.status_code,
        content=mapping.body.model_dump(),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    for exc_class in (
        RequestError,
        StarletteHTTPException,
        PersistenceError,
        SQLAlchemyError,
        RequestValidationError,
        ValueError,
    ):
        app.add_exception_handler(exc_class, handle_exception)
