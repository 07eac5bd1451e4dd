import pytest
from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from loguru import logger
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.requests import Request

from src.finstream.api.http import errors as errors_module
from src.finstream.api.http.errors import handle_exception, map_exception
from src.finstream.core.exceptions import (
    InvalidInputError,
    PersistenceError,
    RequestError,
)


@pytest.fixture
def log_records():
    records = []
    # only what the error handler itself logs
    sink_id = logger.add(
        lambda msg: records.append(msg.record),
        level="DEBUG",
        filter=errors_module.__name__,
    )
    yield records
    logger.remove(sink_id)


def _request(path: str = "/api/users/me") -> Request:
    return Request({"type": "http", "method": "GET", "path": path, "headers": []})


class TestMapException:
    def test_request_error_keeps_its_status(self):
        mapping = map_exception(RequestError(404, "User not Found"))

        assert mapping.status_code == 404
        assert mapping.body.model_dump() == {
            "error": "Request Error",
            "message": "User not Found",
        }
        assert mapping.level == "ERROR"

    def test_http_exception_is_a_request_error(self):
        mapping = map_exception(HTTPException(status_code=401, detail="Missing Bearer token"))

        assert mapping.status_code == 401
        assert mapping.body.error == "Request Error"
        assert mapping.body.message == "Missing Bearer token"

    @pytest.mark.parametrize(
        "exc",
        [
            PersistenceError("connection refused on db-host:5432"),
            OperationalError("SELECT 1", {}, Exception("password=hunter2")),
            IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed")),
        ],
    )
    def test_persistence_failures_hide_details(self, exc):
        mapping = map_exception(exc)

        assert mapping.status_code == 503
        assert mapping.body.model_dump() == {
            "error": "Database Error",
            "message": "Service temporarily unavailable",
        }
        assert mapping.level == "ERROR"

    @pytest.mark.parametrize(
        "exc", [InvalidInputError("bad subscribed flag"), ValueError("bad subscribed flag")]
    )
    def test_invalid_input(self, exc):
        mapping = map_exception(exc)

        assert mapping.status_code == 400
        assert mapping.body.error == "Invalid Input"
        assert mapping.body.message == "bad subscribed flag"
        assert mapping.level == "WARNING"

    def test_request_validation_error_is_summarised(self):
        exc = RequestValidationError(
            [{"loc": ("body", "subscribed"), "msg": "Input should be a valid boolean"}]
        )

        mapping = map_exception(exc)

        assert mapping.status_code == 400
        assert mapping.body.message == "subscribed: Input should be a valid boolean"

    def test_anything_else_is_internal(self):
        mapping = map_exception(RuntimeError("secret internals"))

        assert mapping.status_code == 500
        assert mapping.body.model_dump() == {
            "error": "Internal Server Error",
            "message": "An unexpected error occurred",
        }


class TestHandleException:
    async def test_response_and_single_log_entry(self, log_records):
        response = await handle_exception(_request(), PersistenceError("db down"))

        assert response.status_code == 503
        assert b"Database Error" in response.body
        assert b"db down" not in response.body
        assert len(log_records) == 1
        assert log_records[0]["level"].name == "ERROR"
        assert log_records[0]["exception"] is not None

    async def test_validation_failures_log_a_warning(self, log_records):
        await handle_exception(_request(), InvalidInputError("nope"))

        assert [r["level"].name for r in log_records] == ["WARNING"]

    async def test_http_exception_headers_are_kept(self, log_records):
        exc = HTTPException(401, "Missing Bearer token", headers={"WWW-Authenticate": "Bearer"})

        response = await handle_exception(_request(), exc)

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"
