"""Typed service results and the error taxonomy shared by all services.

Services raise ``ServiceError`` internally and convert it to a
``ServiceResult`` at their public boundary, so callers (the CLI, the
optimistic mutator) branch on ``result.ok`` instead of catching exceptions.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorCode(StrEnum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INTERNAL_ERROR = "INTERNAL_ERROR"


GENERIC_INTERNAL_MESSAGE = "An unexpected error occurred"


class ServiceError(Exception):
    """Raised for a typed, user-presentable service failure."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Success/failure union returned across the service boundary."""

    data: T | None = None
    error_code: ErrorCode | None = None
    error_message: str | None = None

    @property
    def ok(self) -> bool:
        return self.error_code is None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(data=data)

    @classmethod
    def failure(cls, code: ErrorCode, message: str) -> ServiceResult[T]:
        return cls(error_code=code, error_message=message)

    @classmethod
    def from_error(cls, exc: ServiceError) -> ServiceResult[T]:
        return cls(error_code=exc.code, error_message=exc.message)

    @classmethod
    def internal_error(cls, message: str = GENERIC_INTERNAL_MESSAGE) -> ServiceResult[T]:
        return cls(error_code=ErrorCode.INTERNAL_ERROR, error_message=message)
