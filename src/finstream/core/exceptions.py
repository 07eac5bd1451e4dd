"""Failure kinds recognised by the error-mapping layer."""


class FinstreamError(Exception):
    """Base class for application failures."""


class RequestError(FinstreamError):
    """A request-level failure carrying the HTTP status to answer with."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class PersistenceError(FinstreamError):
    """The user store could not complete an operation."""


class InvalidInputError(FinstreamError, ValueError):
    """The caller supplied malformed or illegal input."""
