"""
Closed result type for the access-control core.

Token verification, role resolution and the CSRF check return an Outcome
instead of raising. Views call unwrap() (or raise ApiError directly) and the
HTTP layer (api.errors) decides what status each ErrorKind becomes.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_TOKEN = "INVALID_TOKEN"
    EXPIRED_TOKEN = "TOKEN_EXPIRED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    CSRF_MISSING = "CSRF_MISSING"
    CSRF_INVALID = "CSRF_INVALID"
    VALIDATION_FAILED = "VALIDATION_ERROR"
    RATE_LIMITED = "RATE_LIMITED"

    @property
    def code(self) -> str:
        return self.value


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str | None = None) -> "Outcome[T]":
        return cls(error=kind, message=message)

    def unwrap(self) -> T:
        """Return the value or raise ApiError for the failure kind."""
        if self.error is not None:
            raise ApiError(self.error, self.message)
        return self.value


class ApiError(Exception):
    """Raised by views; api.errors turns it into the JSON error envelope."""

    def __init__(self, kind: ErrorKind, message: str | None = None, details: dict | None = None,
                 headers: dict | None = None):
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message
        self.details = details
        self.headers = headers or {}
