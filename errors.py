"""
Error types raised by the request handlers.

Each error carries the HTTP status it maps to; main.py turns them into
JSON responses of the form {"message": ..., "error": ...}.
"""
from typing import Optional


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.error:
            body["error"] = self.error
        return body


class Unauthenticated(ApiError):
    status_code = 401


class NotFound(ApiError):
    status_code = 404


class InvalidInput(ApiError):
    status_code = 400


class InvalidStatus(InvalidInput):
    pass


class Conflict(ApiError):
    status_code = 409


class AlreadyFinalized(ApiError):
    status_code = 400


class IllegalTransition(ApiError):
    status_code = 400


class Internal(ApiError):
    status_code = 500
